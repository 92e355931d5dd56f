"""
Configuration management for the engagement monitoring pipeline.

Every tunable constant of the pipeline lives in one of the frozen dataclass
sections below. Components receive their section at construction, so tests
can substitute their own values without touching module state.
"""

import os
import json
import dataclasses
from dataclasses import dataclass, field
from typing import Dict, Any, Optional, Tuple

from ..core.models import AttentionState, ExpressionState


@dataclass(frozen=True)
class EARConfig:
    """Eye aspect ratio estimation settings."""
    left_eye_indices: Tuple[int, ...] = (362, 385, 387, 263, 373, 380)
    right_eye_indices: Tuple[int, ...] = (133, 158, 160, 33, 144, 153)
    left_eye_extended: Tuple[int, ...] = (
        362, 398, 384, 385, 386, 387, 388, 466, 263, 249, 390, 373, 374, 380, 381, 382
    )
    right_eye_extended: Tuple[int, ...] = (
        133, 173, 157, 158, 159, 160, 161, 246, 33, 7, 163, 144, 145, 153, 154, 155
    )
    basic_weight: float = 0.7
    extended_weight: float = 0.3
    depth_weight: float = 0.1
    yaw_correction: float = 0.3
    pitch_correction: float = 0.2
    roll_correction: float = 0.1
    min_correction: float = 0.5
    max_correction: float = 2.0
    smoothing_alpha: float = 0.3
    history_size: int = 5
    min_ear: float = 0.05
    max_ear: float = 0.5
    min_horizontal_distance: float = 0.001


@dataclass(frozen=True)
class SmoothingConfig:
    """Temporal smoothing (hysteresis voting) settings."""
    window_size: int = 7
    weights: Tuple[float, ...] = (0.05, 0.10, 0.15, 0.20, 0.25, 0.25)
    min_history: int = 3
    state_change_threshold: float = 0.7
    eyes_open_cutoff: float = 0.15
    stable_frames: int = 3
    consistency_weight: float = 0.7
    confidence_weight: float = 0.3


@dataclass(frozen=True)
class ThresholdConfig:
    """Default detection thresholds used until a user is calibrated."""
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


@dataclass(frozen=True)
class CalibrationConfig:
    """Per-user calibration and online adaptation settings."""
    min_samples: int = 30
    adaptation_rate: float = 0.1
    sample_min_confidence: float = 0.7
    ear_factor: float = 0.7
    ear_range: Tuple[float, float] = (0.08, 0.20)
    pose_factor: float = 1.2
    yaw_range: Tuple[float, float] = (15.0, 40.0)
    pitch_range: Tuple[float, float] = (10.0, 30.0)
    blink_range: Tuple[float, float] = (0.3, 0.8)
    dim_brightness: float = 0.3
    bright_brightness: float = 0.8
    dim_lighting_factor: float = 1.2
    bright_lighting_factor: float = 0.9
    far_face_size: float = 0.3
    near_face_size: float = 0.7
    far_distance_factor: float = 1.3
    near_distance_factor: float = 0.8


@dataclass(frozen=True)
class ExpressionConfig:
    """Expression scoring thresholds and smoothing."""
    smile_threshold: float = 0.3
    laugh_threshold: float = 0.6
    surprise_threshold: float = 0.4
    confused_threshold: float = 0.35
    concentrated_threshold: float = 0.25
    bored_threshold: float = 0.2
    frustrated_threshold: float = 0.3
    excited_threshold: float = 0.5
    secondary_min_score: float = 0.4
    intensity_smoothing: float = 0.7
    switch_damping: float = 0.7
    neutral_confidence: float = 0.8
    neutral_intensity: float = 0.1
    history_size: int = 5


@dataclass(frozen=True)
class EngagementConfig:
    """Engagement score weights and per-state lookup tables."""
    attention_weight: float = 0.6
    expression_weight: float = 0.4
    attention_scores: Dict[str, float] = field(default_factory=lambda: {
        'ATTENTIVE': 1.0,
        'THINKING_CONCENTRATING': 0.9,
        'CONFUSED': 0.7,
        'YAWNING': 0.3,
        'DROWSY_FATIGUED': 0.2,
        'DISTRACTED_LOOKING_AWAY': 0.1,
        'UNKNOWN': 0.5,
    })
    expression_scores: Dict[str, float] = field(default_factory=lambda: {
        'EXCITED': 1.0,
        'CONCENTRATED': 0.95,
        'SMILING': 0.8,
        'SURPRISED': 0.7,
        'NEUTRAL': 0.6,
        'CONFUSED': 0.5,
        'FRUSTRATED': 0.3,
        'BORED': 0.2,
        'LAUGHING': 0.4,  # may indicate distraction
        'UNKNOWN': 0.5,
    })


@dataclass(frozen=True)
class GovernorConfig:
    """Frame rate and UI update governance."""
    target_fps: int = 15
    ui_update_interval_ms: int = 200
    cache_validity_ms: int = 100
    significant_change: float = 0.05
    skip_frame_threshold: int = 3
    load_factor: float = 0.8
    interval_window: int = 10


@dataclass(frozen=True)
class LoggingConfig:
    """Logging settings."""
    enable_file_logging: bool = False
    log_dir: str = "logs"
    log_level: str = "INFO"
    console_level: str = "ERROR"
    debug_every_n_frames: int = 5


SECTION_TYPES = {
    'ear': EARConfig,
    'smoothing': SmoothingConfig,
    'thresholds': ThresholdConfig,
    'calibration': CalibrationConfig,
    'expression': ExpressionConfig,
    'engagement': EngagementConfig,
    'governor': GovernorConfig,
    'logging': LoggingConfig,
}


class Config:
    """Main configuration class for the engagement monitoring pipeline."""

    def __init__(self, config_file: Optional[str] = None):
        """Initialize configuration with optional config file."""
        self.ear = EARConfig()
        self.smoothing = SmoothingConfig()
        self.thresholds = ThresholdConfig()
        self.calibration = CalibrationConfig()
        self.expression = ExpressionConfig()
        self.engagement = EngagementConfig()
        self.governor = GovernorConfig()
        self.logging = LoggingConfig()

        if config_file and os.path.exists(config_file):
            self.load_from_file(config_file)

    def load_from_file(self, config_file: str) -> None:
        """Load configuration from JSON file."""
        try:
            with open(config_file, 'r') as f:
                config_data = json.load(f)
        except (OSError, ValueError) as e:
            print(f"Warning: Could not load config file {config_file}: {e}")
            return

        for section_name, section_data in config_data.items():
            if section_name not in SECTION_TYPES or not isinstance(section_data, dict):
                continue
            section = getattr(self, section_name)
            known = {f.name for f in dataclasses.fields(section)}
            updates = {}
            for key, value in section_data.items():
                if key not in known:
                    continue
                # JSON has no tuples
                if isinstance(getattr(section, key), tuple) and isinstance(value, list):
                    value = tuple(value)
                updates[key] = value
            setattr(self, section_name, dataclasses.replace(section, **updates))

    def save_to_file(self, config_file: str) -> None:
        """Save current configuration to JSON file."""
        config_data = self.to_dict()

        try:
            directory = os.path.dirname(config_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(config_file, 'w') as f:
                json.dump(config_data, f, indent=2)
        except OSError as e:
            print(f"Warning: Could not save config file {config_file}: {e}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert every section to a plain dictionary."""
        return {
            section_name: dataclasses.asdict(getattr(self, section_name))
            for section_name in SECTION_TYPES
        }

    def validate_config(self) -> bool:
        """Validate configuration settings."""
        errors = []

        if self.governor.target_fps <= 0:
            errors.append("Target FPS must be positive")

        if self.governor.skip_frame_threshold < 1:
            errors.append("Skip frame threshold must be at least 1")

        if self.smoothing.window_size < 1 or not self.smoothing.weights:
            errors.append("Smoothing window and weights must be non-empty")

        if not 0.0 < self.smoothing.state_change_threshold <= 1.0:
            errors.append("State change threshold must be in (0, 1]")

        if self.ear.history_size < 1:
            errors.append("EAR history size must be positive")

        if abs(self.ear.basic_weight + self.ear.extended_weight - 1.0) > 0.01:
            errors.append("EAR basic and extended weights must sum to 1.0")

        total_weight = self.engagement.attention_weight + self.engagement.expression_weight
        if abs(total_weight - 1.0) > 0.01:
            errors.append("Engagement weights must sum to 1.0")

        missing = [s.name for s in AttentionState if s.name not in self.engagement.attention_scores]
        if missing:
            errors.append(f"Attention score table missing states: {', '.join(missing)}")

        missing = [s.name for s in ExpressionState if s.name not in self.engagement.expression_scores]
        if missing:
            errors.append(f"Expression score table missing states: {', '.join(missing)}")

        if self.calibration.min_samples < 1:
            errors.append("Calibration requires at least one sample")

        if errors:
            print("Configuration validation errors:")
            for error in errors:
                print(f"  - {error}")
            return False

        return True


# Global configuration instance
config = Config()

# Default configuration file path
DEFAULT_CONFIG_FILE = "data/configs/default_config.json"

# Load default configuration if available
if os.path.exists(DEFAULT_CONFIG_FILE):
    config.load_from_file(DEFAULT_CONFIG_FILE)
