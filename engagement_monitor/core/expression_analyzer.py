"""
Expression Analysis Module

Scores facial expressions from blendshape activations. Each expression is a
fixed linear blend of activations compared against its own threshold; the
strongest candidate wins, intensity is filtered across frames and confidence
is damped when the primary expression flips between consecutive frames.
"""

from collections import Counter
from typing import Callable, List, Optional, Tuple

import numpy as np

from .models import BlendshapeFeatures, ExpressionResult, ExpressionState, clamp01
from .ring_buffer import RingHistory
from ..utils.config import ExpressionConfig, config

POSITIVE_EXPRESSIONS = frozenset({
    ExpressionState.SMILING,
    ExpressionState.LAUGHING,
    ExpressionState.EXCITED,
})

NEGATIVE_EXPRESSIONS = frozenset({
    ExpressionState.FRUSTRATED,
    ExpressionState.BORED,
    ExpressionState.CONFUSED,
})

LEARNING_STATES = {
    ExpressionState.CONCENTRATED: "Deeply engaged",
    ExpressionState.CONFUSED: "Having difficulty",
    ExpressionState.EXCITED: "Highly interested",
    ExpressionState.BORED: "Needs stimulation",
    ExpressionState.FRUSTRATED: "Needs help",
    ExpressionState.SMILING: "Enjoying the material",
    ExpressionState.SURPRISED: "Discovering something new",
    ExpressionState.NEUTRAL: "Calmly learning",
    ExpressionState.LAUGHING: "Status unknown",
    ExpressionState.UNKNOWN: "Status unknown",
}


def _mean(*values: float) -> float:
    return sum(values) / len(values)


def smile_score(bs: BlendshapeFeatures) -> float:
    """Raised mouth corners, lifted cheeks, slight squint."""
    mouth_smile = _mean(bs.mouth_smile_left, bs.mouth_smile_right)
    cheek_squint = _mean(bs.cheek_squint_left, bs.cheek_squint_right)
    eye_squint = _mean(bs.eye_squint_left, bs.eye_squint_right)
    return mouth_smile * 0.6 + cheek_squint * 0.3 + eye_squint * 0.1


def surprise_score(bs: BlendshapeFeatures) -> float:
    """Wide eyes, raised brows, possibly open jaw."""
    eye_wide = _mean(bs.eye_wide_left, bs.eye_wide_right)
    brow_up = _mean(bs.brow_inner_up, bs.brow_outer_up_left, bs.brow_outer_up_right)
    return eye_wide * 0.4 + brow_up * 0.4 + bs.jaw_open * 0.2


def confusion_score(bs: BlendshapeFeatures) -> float:
    """Furrowed brow with raised inner brow, squint, pressed lips."""
    brow_down = _mean(bs.brow_down_left, bs.brow_down_right)
    eye_squint = _mean(bs.eye_squint_left, bs.eye_squint_right)
    mouth_press = _mean(bs.mouth_press_left, bs.mouth_press_right)
    return brow_down * 0.3 + bs.brow_inner_up * 0.3 + eye_squint * 0.2 + mouth_press * 0.2


def concentration_score(bs: BlendshapeFeatures) -> float:
    """Slight frown, squint, closed lips."""
    brow_down = _mean(bs.brow_down_left, bs.brow_down_right)
    eye_squint = _mean(bs.eye_squint_left, bs.eye_squint_right)
    mouth_press = _mean(bs.mouth_press_left, bs.mouth_press_right)
    return brow_down * 0.3 + eye_squint * 0.3 + mouth_press * 0.2 + bs.mouth_pucker * 0.2


def boredom_score(bs: BlendshapeFeatures) -> float:
    """Blinking, drooping mouth corners, lowered brow, downward gaze."""
    eye_blink = _mean(bs.eye_blink_left, bs.eye_blink_right)
    mouth_frown = _mean(bs.mouth_frown_left, bs.mouth_frown_right)
    brow_down = _mean(bs.brow_down_left, bs.brow_down_right)
    eye_look_down = _mean(bs.eye_look_down_left, bs.eye_look_down_right)
    return eye_blink * 0.25 + mouth_frown * 0.25 + brow_down * 0.25 + eye_look_down * 0.25


def frustration_score(bs: BlendshapeFeatures) -> float:
    """Deep frown, drooping mouth, squint, nose sneer."""
    brow_down = _mean(bs.brow_down_left, bs.brow_down_right)
    mouth_frown = _mean(bs.mouth_frown_left, bs.mouth_frown_right)
    eye_squint = _mean(bs.eye_squint_left, bs.eye_squint_right)
    nose_sneer = _mean(bs.nose_sneer_left, bs.nose_sneer_right)
    return brow_down * 0.3 + mouth_frown * 0.3 + eye_squint * 0.2 + nose_sneer * 0.2


def excitement_score(bs: BlendshapeFeatures) -> float:
    """Big smile, wide eyes, raised outer brows, open jaw."""
    mouth_smile = _mean(bs.mouth_smile_left, bs.mouth_smile_right)
    eye_wide = _mean(bs.eye_wide_left, bs.eye_wide_right)
    brow_up = _mean(bs.brow_outer_up_left, bs.brow_outer_up_right)
    return mouth_smile * 0.4 + eye_wide * 0.2 + brow_up * 0.2 + bs.jaw_open * 0.2


class ExpressionScorer:
    """Ranks expression candidates and tracks a short expression history."""

    def __init__(self, expression_config: Optional[ExpressionConfig] = None):
        """
        Initialize expression scorer.

        Args:
            expression_config: Per-expression thresholds and smoothing
                constants (defaults to the global configuration)
        """
        self.config = expression_config or config.expression
        self.history: RingHistory[ExpressionResult] = RingHistory(self.config.history_size)
        self.last_intensity = 0.0

        # (state, scorer, threshold); smile is handled separately for the laugh promotion
        self.scorers: List[Tuple[ExpressionState, Callable[[BlendshapeFeatures], float], float]] = [
            (ExpressionState.SURPRISED, surprise_score, self.config.surprise_threshold),
            (ExpressionState.CONFUSED, confusion_score, self.config.confused_threshold),
            (ExpressionState.CONCENTRATED, concentration_score, self.config.concentrated_threshold),
            (ExpressionState.BORED, boredom_score, self.config.bored_threshold),
            (ExpressionState.FRUSTRATED, frustration_score, self.config.frustrated_threshold),
            (ExpressionState.EXCITED, excitement_score, self.config.excited_threshold),
        ]

    def analyze(self, blendshapes: BlendshapeFeatures) -> ExpressionResult:
        """
        Analyze expression from blendshape activations.

        Args:
            blendshapes: Facial activation scores for the current frame

        Returns:
            ExpressionResult with damped confidence and filtered intensity
        """
        candidates = self._collect_candidates(blendshapes)
        result = self._select_best(candidates)
        result = self._apply_consistency(result)

        self.history.push(result)
        return result

    def _collect_candidates(self, blendshapes: BlendshapeFeatures) -> List[Tuple[ExpressionState, float]]:
        candidates = []

        smile = smile_score(blendshapes)
        if smile > self.config.smile_threshold:
            if smile > self.config.laugh_threshold:
                candidates.append((ExpressionState.LAUGHING, smile))
            else:
                candidates.append((ExpressionState.SMILING, smile))

        for state, scorer, threshold in self.scorers:
            score = scorer(blendshapes)
            if score > threshold:
                candidates.append((state, score))

        return candidates

    def _select_best(self, candidates: List[Tuple[ExpressionState, float]]) -> ExpressionResult:
        if not candidates:
            return ExpressionResult(
                primary_expression=ExpressionState.NEUTRAL,
                confidence=self.config.neutral_confidence,
                intensity=self.config.neutral_intensity,
            )

        # Stable sort keeps candidate order on ties
        ranked = sorted(candidates, key=lambda item: item[1], reverse=True)
        best_state, best_score = ranked[0]

        secondary = None
        if len(ranked) > 1 and ranked[1][1] > self.config.secondary_min_score:
            secondary = ranked[1][0]

        return ExpressionResult(
            primary_expression=best_state,
            confidence=clamp01(best_score),
            secondary_expression=secondary,
            intensity=self._calculate_intensity(best_score),
        )

    def _calculate_intensity(self, score: float) -> float:
        normalized = clamp01(score)
        intensity = normalized * normalized
        persistence = self.config.intensity_smoothing
        self.last_intensity = persistence * self.last_intensity + (1.0 - persistence) * intensity
        return clamp01(self.last_intensity)

    def _apply_consistency(self, result: ExpressionResult) -> ExpressionResult:
        previous = self.history.latest()
        if previous is None:
            return result

        if previous.primary_expression == result.primary_expression:
            return result

        return result.copy(confidence=clamp01(result.confidence * self.config.switch_damping))

    def current_expression(self) -> Optional[ExpressionState]:
        latest = self.history.latest()
        return latest.primary_expression if latest is not None else None

    def stats(self) -> str:
        """Summary of the recent expression history."""
        history = self.history.snapshot()
        if not history:
            return "No expression data"

        counts = Counter(result.primary_expression.name for result in history)
        avg_confidence = np.mean([result.confidence for result in history])
        avg_intensity = np.mean([result.intensity for result in history])

        return (
            f"Expression History ({len(history)} samples):\n"
            f"{', '.join(f'{name}: {count}' for name, count in counts.items())}\n"
            f"Avg Confidence: {avg_confidence:.2f}\n"
            f"Avg Intensity: {avg_intensity:.2f}"
        )

    def trend(self) -> str:
        """Positive/negative/neutral trend over the last three expressions."""
        history = self.history.snapshot()
        if len(history) < 3:
            return "Insufficient data"

        recent = history[-3:]
        positive = sum(1 for result in recent if self.is_positive(result.primary_expression))
        negative = sum(1 for result in recent if self.is_negative(result.primary_expression))

        if positive >= 2:
            return "Positive trend"
        if negative >= 2:
            return "Negative trend"
        return "Neutral trend"

    def reset(self) -> None:
        """Clear history and the intensity filter."""
        self.history.clear()
        self.last_intensity = 0.0

    @staticmethod
    def is_positive(expression: ExpressionState) -> bool:
        return expression in POSITIVE_EXPRESSIONS

    @staticmethod
    def is_negative(expression: ExpressionState) -> bool:
        return expression in NEGATIVE_EXPRESSIONS

    @staticmethod
    def learning_state(expression: ExpressionState) -> str:
        return LEARNING_STATES.get(expression, "Status unknown")
