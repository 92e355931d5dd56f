"""
Engagement scoring: combines smoothed attention and expression into one value.
"""

from typing import Optional

from .models import AttentionResult, ComprehensiveAnalysisResult, ExpressionResult, clamp01
from ..utils.config import EngagementConfig, config


class EngagementCombiner:
    """Weighted attention/expression score scaled by both confidences."""

    def __init__(self, engagement_config: Optional[EngagementConfig] = None):
        self.config = engagement_config or config.engagement

    def attention_score(self, attention: AttentionResult) -> float:
        return self.config.attention_scores[attention.state.name]

    def expression_score(self, expression: ExpressionResult) -> float:
        return self.config.expression_scores[expression.primary_expression.name]

    def score(self, attention: AttentionResult, expression: ExpressionResult) -> float:
        """
        Calculate the overall engagement score.

        Args:
            attention: Smoothed attention verdict
            expression: Expression verdict for the same frame

        Returns:
            Engagement in [0, 1]
        """
        # Intensity maps to a 0.5-1.0 multiplier on the expression term
        intensity_factor = expression.intensity * 0.5 + 0.5

        engagement = (
            self.attention_score(attention) * self.config.attention_weight
            + self.expression_score(expression) * self.config.expression_weight * intensity_factor
        ) * attention.confidence * expression.confidence

        return clamp01(engagement)

    def combine(self, attention: AttentionResult, expression: ExpressionResult) -> ComprehensiveAnalysisResult:
        """Build the comprehensive report for one frame."""
        return ComprehensiveAnalysisResult(
            attention_result=attention,
            expression_result=expression,
            overall_engagement=self.score(attention, expression),
        )
