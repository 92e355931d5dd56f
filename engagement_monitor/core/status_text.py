"""
Status Text Module

Renders the multi-line status summary pushed to the UI for a processed frame.
"""

from typing import Dict

from .models import AttentionState, ComprehensiveAnalysisResult, ExpressionState
from ..utils.formatting import format_percentage
from ..utils.memory_pool import ScratchPool

ATTENTION_LABELS: Dict[AttentionState, str] = {
    AttentionState.ATTENTIVE: "✅ Attentive",
    AttentionState.THINKING_CONCENTRATING: "🤔 Thinking",
    AttentionState.CONFUSED: "😕 Confused",
    AttentionState.DISTRACTED_LOOKING_AWAY: "👀 Looking away",
    AttentionState.DROWSY_FATIGUED: "😴 Drowsy",
    AttentionState.YAWNING: "🥱 Yawning",
    AttentionState.UNKNOWN: "❓ Unknown",
}

EXPRESSION_LABELS: Dict[ExpressionState, str] = {
    ExpressionState.SMILING: "😊 Smiling",
    ExpressionState.LAUGHING: "😂 Laughing",
    ExpressionState.SURPRISED: "😲 Surprised",
    ExpressionState.CONFUSED: "😕 Confused",
    ExpressionState.CONCENTRATED: "🤔 Concentrated",
    ExpressionState.BORED: "😑 Bored",
    ExpressionState.FRUSTRATED: "😤 Frustrated",
    ExpressionState.EXCITED: "🤩 Excited",
    ExpressionState.NEUTRAL: "😐 Neutral",
    ExpressionState.UNKNOWN: "❓ Unknown",
}


def engagement_level(engagement: float) -> str:
    """Coarse label for an engagement score."""
    if engagement >= 0.8:
        return "🔥 Very high"
    if engagement >= 0.6:
        return "👍 High"
    if engagement >= 0.4:
        return "📊 Medium"
    if engagement >= 0.2:
        return "📉 Low"
    return "⚠️ Very low"


def build_status_text(pool: ScratchPool, report: ComprehensiveAnalysisResult, learning_state: str,
                      head_pose_attentive: bool, eyes_open: bool, stability: int,
                      expression_trend: str) -> str:
    """
    Build the status summary for one report.

    Args:
        pool: Scratch pool providing the text buffer
        report: Comprehensive result for the frame
        learning_state: Description derived from the primary expression
        head_pose_attentive: Raw (unsmoothed) head pose verdict
        eyes_open: Raw eyes-open verdict against the adaptive threshold
        stability: Frames the smoothed attention state has held
        expression_trend: Recent expression trend description

    Returns:
        Multi-line status text
    """
    attention = report.attention_result
    expression = report.expression_result

    with pool.string_buffer() as sb:
        sb.write("🧠 Attention: ")
        sb.write(ATTENTION_LABELS[attention.state])
        sb.write(f" ({format_percentage(attention.confidence)})\n")

        sb.write("😊 Expression: ")
        sb.write(EXPRESSION_LABELS[expression.primary_expression])
        sb.write(f" (intensity: {format_percentage(expression.intensity)})\n")

        sb.write(f"📚 Learning state: {learning_state}\n")

        sb.write(f"📈 Engagement: {engagement_level(report.overall_engagement)}")
        sb.write(f" ({format_percentage(report.overall_engagement)})\n")

        sb.write("\n📊 Details:\n")
        sb.write(f"   • Head pose: {'✅ attentive' if head_pose_attentive else '❌ not attentive'}\n")
        sb.write(f"   • Eyes: {'👁️ open' if eyes_open else '🙈 closed'}\n")
        sb.write(f"   • Stability: {stability} frames\n")
        sb.write(f"   • Expression trend: {expression_trend}")

        return sb.getvalue()
