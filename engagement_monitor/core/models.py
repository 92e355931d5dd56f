"""
Data Model Module

Enumerations and immutable records shared by every stage of the engagement
pipeline: blendshape activations, per-frame features, attention and
expression verdicts, calibration baselines and threshold sets.
"""

import time
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple, Union


def current_millis() -> int:
    """Wall-clock time in milliseconds."""
    return int(time.time() * 1000)


def clamp(value: float, low: float, high: float) -> float:
    """Clamp value to [low, high]; NaN maps to low."""
    if value != value:
        return low
    return max(low, min(high, value))


def clamp01(value: float) -> float:
    """Clamp value to [0, 1] with NaN safety."""
    return clamp(value, 0.0, 1.0)


class AttentionState(Enum):
    """Discrete attention states, in cascade priority order of the classifier."""
    ATTENTIVE = "ATTENTIVE"
    DISTRACTED_LOOKING_AWAY = "DISTRACTED_LOOKING_AWAY"
    DROWSY_FATIGUED = "DROWSY_FATIGUED"
    YAWNING = "YAWNING"
    THINKING_CONCENTRATING = "THINKING_CONCENTRATING"
    CONFUSED = "CONFUSED"
    UNKNOWN = "UNKNOWN"


class ExpressionState(Enum):
    """Discrete facial expression states."""
    NEUTRAL = "NEUTRAL"
    SMILING = "SMILING"
    LAUGHING = "LAUGHING"
    SURPRISED = "SURPRISED"
    CONFUSED = "CONFUSED"
    CONCENTRATED = "CONCENTRATED"
    BORED = "BORED"
    FRUSTRATED = "FRUSTRATED"
    EXCITED = "EXCITED"
    UNKNOWN = "UNKNOWN"


# Engine category names, in the slot order of BlendshapeFeatures
BLENDSHAPE_NAMES = (
    "eyeBlinkLeft", "eyeBlinkRight",
    "eyeLookDownLeft", "eyeLookDownRight",
    "eyeLookUpLeft", "eyeLookUpRight",
    "eyeLookOutLeft", "eyeLookOutRight",
    "eyeSquintLeft", "eyeSquintRight",
    "eyeWideLeft", "eyeWideRight",
    "browDownLeft", "browDownRight",
    "browInnerUp", "browOuterUpLeft", "browOuterUpRight",
    "jawOpen",
    "mouthSmileLeft", "mouthSmileRight",
    "mouthPressLeft", "mouthPressRight",
    "mouthPucker", "mouthShrugLower", "mouthShrugUpper",
    "cheekSquintLeft", "cheekSquintRight",
    "mouthFrownLeft", "mouthFrownRight",
    "mouthRollLower", "mouthRollUpper",
    "noseSneerLeft", "noseSneerRight",
)


def _snake_case(name: str) -> str:
    return ''.join('_' + c.lower() if c.isupper() else c for c in name)


@dataclass(frozen=True)
class BlendshapeFeatures:
    """The 33 facial activation scores consumed by the classifier and scorer."""
    eye_blink_left: float = 0.0
    eye_blink_right: float = 0.0
    eye_look_down_left: float = 0.0
    eye_look_down_right: float = 0.0
    eye_look_up_left: float = 0.0
    eye_look_up_right: float = 0.0
    eye_look_out_left: float = 0.0
    eye_look_out_right: float = 0.0
    eye_squint_left: float = 0.0
    eye_squint_right: float = 0.0
    eye_wide_left: float = 0.0
    eye_wide_right: float = 0.0
    brow_down_left: float = 0.0
    brow_down_right: float = 0.0
    brow_inner_up: float = 0.0
    brow_outer_up_left: float = 0.0
    brow_outer_up_right: float = 0.0
    jaw_open: float = 0.0
    mouth_smile_left: float = 0.0
    mouth_smile_right: float = 0.0
    mouth_press_left: float = 0.0
    mouth_press_right: float = 0.0
    mouth_pucker: float = 0.0
    mouth_shrug_lower: float = 0.0
    mouth_shrug_upper: float = 0.0
    cheek_squint_left: float = 0.0
    cheek_squint_right: float = 0.0
    mouth_frown_left: float = 0.0
    mouth_frown_right: float = 0.0
    mouth_roll_lower: float = 0.0
    mouth_roll_upper: float = 0.0
    nose_sneer_left: float = 0.0
    nose_sneer_right: float = 0.0

    @classmethod
    def from_scores(cls, scores: Union[Mapping[str, float], Iterable[Any], None]) -> 'BlendshapeFeatures':
        """
        Build features from engine output.

        Args:
            scores: Mapping of category name to score, an iterable of
                (name, score) pairs, or category objects exposing
                ``category_name``/``score``. Unknown names are ignored.

        Returns:
            BlendshapeFeatures with missing activations left at 0
        """
        if not scores:
            return cls()

        if isinstance(scores, Mapping):
            items = scores.items()
        else:
            items = (_category_pair(category) for category in scores)

        values = {}
        for name, score in items:
            attr = _NAME_TO_FIELD.get(name)
            if attr is not None:
                values[attr] = clamp01(float(score))
        return cls(**values)

    def as_vector(self) -> Tuple[float, ...]:
        """Activations in engine slot order."""
        return tuple(getattr(self, f.name) for f in fields(self))

    def to_dict(self) -> Dict[str, float]:
        """Activations keyed by engine category name."""
        return dict(zip(BLENDSHAPE_NAMES, self.as_vector()))


_NAME_TO_FIELD = {name: _snake_case(name) for name in BLENDSHAPE_NAMES}


def _category_pair(category: Any) -> Tuple[str, float]:
    if isinstance(category, (tuple, list)):
        return category[0], category[1]
    name = getattr(category, 'category_name', None)
    score = getattr(category, 'score', 0.0)
    if callable(name):
        name = name()
    if callable(score):
        score = score()
    return name, score


@dataclass(frozen=True)
class AttentionFeatures:
    """Features extracted from a single frame (the FeatureFrame)."""
    head_pose_yaw: float = 0.0
    head_pose_pitch: float = 0.0
    head_pose_roll: float = 0.0
    left_eye_ear: float = 0.0
    right_eye_ear: float = 0.0
    average_ear: float = 0.0
    blendshapes: BlendshapeFeatures = field(default_factory=BlendshapeFeatures)
    is_head_pose_attentive: bool = False
    are_eyes_open: bool = False
    confidence: float = 0.0
    timestamp: int = field(default_factory=current_millis)

    def copy(self, **changes) -> 'AttentionFeatures':
        return replace(self, **changes)


@dataclass(frozen=True)
class AttentionResult:
    """Attention verdict for one frame, raw or smoothed."""
    state: AttentionState
    confidence: float
    features: AttentionFeatures
    timestamp: int = field(default_factory=current_millis)


@dataclass(frozen=True)
class ExpressionResult:
    """Expression verdict for one frame."""
    primary_expression: ExpressionState
    confidence: float
    secondary_expression: Optional[ExpressionState] = None
    intensity: float = 0.0
    timestamp: int = field(default_factory=current_millis)

    def copy(self, **changes) -> 'ExpressionResult':
        return replace(self, **changes)


@dataclass(frozen=True)
class ComprehensiveAnalysisResult:
    """Attention plus expression plus the combined engagement score."""
    attention_result: AttentionResult
    expression_result: ExpressionResult
    overall_engagement: float
    timestamp: int = field(default_factory=current_millis)


@dataclass(frozen=True)
class UserBaseline:
    """Per-user averages collected during calibration."""
    avg_ear: float = 0.25
    avg_yaw_range: float = 30.0
    avg_pitch_range: float = 20.0
    calibration_count: int = 0
    is_calibrated: bool = False


@dataclass(frozen=True)
class EyeIndices:
    """Six-point eye contour landmark indices."""
    p1: int  # outer corner
    p2: int  # upper lid 1
    p3: int  # upper lid 2
    p4: int  # inner corner
    p5: int  # lower lid 1
    p6: int  # lower lid 2

    @classmethod
    def from_sequence(cls, indices) -> 'EyeIndices':
        return cls(*indices[:6])

    def max_index(self) -> int:
        return max(self.p1, self.p2, self.p3, self.p4, self.p5, self.p6)


@dataclass(frozen=True)
class ThresholdSet:
    """
    Detection thresholds plus environment multipliers.

    The multipliers are applied only by the ``adjusted_*`` accessors so that
    calibrated values stay untouched when lighting or distance changes.
    """
    ear: float = 0.11
    yaw: float = 25.0
    pitch: float = 20.0
    roll: float = 15.0
    yawn: float = 0.5
    blink: float = 0.5
    look_side: float = 0.45
    look_down: float = 0.6
    look_up: float = 0.5
    brow_down: float = 0.35
    eye_squint: float = 0.4
    mouth_press: float = 0.3
    brow_inner_up: float = 0.3
    look_down_pitch: float = -15.0
    lighting_factor: float = 1.0
    distance_factor: float = 1.0

    @property
    def environment_factor(self) -> float:
        return self.lighting_factor * self.distance_factor

    @property
    def adjusted_ear(self) -> float:
        return self.ear * self.environment_factor

    @property
    def adjusted_yaw(self) -> float:
        return self.yaw * self.environment_factor

    @property
    def adjusted_pitch(self) -> float:
        return self.pitch * self.environment_factor

    def copy(self, **changes) -> 'ThresholdSet':
        return replace(self, **changes)


@dataclass(frozen=True)
class PerformanceStats:
    """Frame governance statistics."""
    average_processing_time: float
    max_processing_time: float
    min_processing_time: float
    target_fps: int
    actual_fps: int
    frame_skip_rate: int
    frame_skip_percentage: float
    total_frames: int
    processed_frames: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'avg_processing_time_ms': self.average_processing_time,
            'max_processing_time_ms': self.max_processing_time,
            'min_processing_time_ms': self.min_processing_time,
            'target_fps': self.target_fps,
            'actual_fps': self.actual_fps,
            'frame_skip_rate': self.frame_skip_rate,
            'frame_skip_percentage': self.frame_skip_percentage,
            'total_frames': self.total_frames,
            'processed_frames': self.processed_frames,
        }


@dataclass(frozen=True)
class MemoryPoolStats:
    """Scratch pool occupancy."""
    string_buffer_pool_size: int
    float_array_pool_size: int
    max_pool_size: int
