"""
Adaptive Threshold Module

Per-user calibration state machine and environment-driven threshold
adjustment. Thresholds start at their defaults, are personalized from a
calibration baseline, can be nudged by ground-truth feedback, and are scaled
at read time for lighting and subject distance.

Calibration values are persisted through an injected key/value store.
"""

import json
import os
import threading
from enum import Enum
from typing import Dict, Optional, Tuple

import numpy as np

from .models import AttentionFeatures, AttentionState, ThresholdSet, UserBaseline, clamp, clamp01
from .ring_buffer import RingHistory
from ..utils.config import CalibrationConfig, ThresholdConfig, config
from ..utils.logger import get_logger

logger = get_logger(__name__)

KEY_EAR_THRESHOLD = "ear_threshold"
KEY_YAW_THRESHOLD = "yaw_threshold"
KEY_PITCH_THRESHOLD = "pitch_threshold"
KEY_BASELINE_EAR = "baseline_ear"
KEY_BASELINE_YAW = "baseline_yaw"
KEY_BASELINE_PITCH = "baseline_pitch"
KEY_BASELINE_COUNT = "baseline_count"
KEY_BASELINE_CALIBRATED = "baseline_calibrated"


class CalibrationStore:
    """Key/value persistence used by AdaptiveThresholdStore."""

    def get(self, key: str, default: float) -> float:
        raise NotImplementedError

    def set(self, key: str, value: float) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class InMemoryCalibrationStore(CalibrationStore):
    """Volatile store, used by default and in tests."""

    def __init__(self, values: Optional[Dict[str, float]] = None):
        self._values: Dict[str, float] = dict(values or {})
        self._lock = threading.Lock()

    def get(self, key: str, default: float) -> float:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: float) -> None:
        with self._lock:
            self._values[key] = float(value)

    def clear(self) -> None:
        with self._lock:
            self._values.clear()

    def as_dict(self) -> Dict[str, float]:
        with self._lock:
            return dict(self._values)


class JsonFileCalibrationStore(CalibrationStore):
    """Store backed by a small JSON file; every write is flushed immediately."""

    def __init__(self, filepath: str):
        self.filepath = filepath
        self._lock = threading.Lock()
        self._values: Dict[str, float] = self._load()

    def _load(self) -> Dict[str, float]:
        if not os.path.exists(self.filepath):
            return {}
        try:
            with open(self.filepath, 'r') as f:
                data = json.load(f)
            return {str(k): float(v) for k, v in data.items()}
        except (OSError, ValueError, AttributeError, TypeError) as e:
            logger.warning(f"Could not read calibration file {self.filepath}: {e}")
            return {}

    def _flush(self) -> None:
        try:
            directory = os.path.dirname(self.filepath)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.filepath, 'w') as f:
                json.dump(self._values, f, indent=2)
        except OSError as e:
            logger.error(f"Could not write calibration file {self.filepath}: {e}")

    def get(self, key: str, default: float) -> float:
        with self._lock:
            return self._values.get(key, default)

    def set(self, key: str, value: float) -> None:
        with self._lock:
            self._values[key] = float(value)
            self._flush()

    def clear(self) -> None:
        with self._lock:
            self._values.clear()
            self._flush()


class CalibrationPhase(Enum):
    """Calibration state machine phases."""
    UNCALIBRATED = "UNCALIBRATED"
    CALIBRATING = "CALIBRATING"
    CALIBRATED = "CALIBRATED"


def default_threshold_set(threshold_config: ThresholdConfig) -> ThresholdSet:
    """Threshold set built from configured defaults, with neutral environment factors."""
    return ThresholdSet(
        ear=threshold_config.ear,
        yaw=threshold_config.yaw,
        pitch=threshold_config.pitch,
        roll=threshold_config.roll,
        yawn=threshold_config.yawn,
        blink=threshold_config.blink,
        look_side=threshold_config.look_side,
        look_down=threshold_config.look_down,
        look_up=threshold_config.look_up,
        brow_down=threshold_config.brow_down,
        eye_squint=threshold_config.eye_squint,
        mouth_press=threshold_config.mouth_press,
        brow_inner_up=threshold_config.brow_inner_up,
        look_down_pitch=threshold_config.look_down_pitch,
    )


class AdaptiveThresholdStore:
    """
    Owns the current ThresholdSet.

    Readers get an immutable snapshot via ``thresholds``; every mutation
    builds a new ThresholdSet and publishes it under a lock, so a frame is
    always classified against one consistent set.
    """

    def __init__(self, store: Optional[CalibrationStore] = None,
                 threshold_config: Optional[ThresholdConfig] = None,
                 calibration_config: Optional[CalibrationConfig] = None):
        """
        Initialize the threshold store and load persisted calibration.

        Args:
            store: Key/value persistence (in-memory when omitted)
            threshold_config: Default thresholds
            calibration_config: Calibration and adaptation constants
        """
        self.store = store if store is not None else InMemoryCalibrationStore()
        self.threshold_config = threshold_config or config.thresholds
        self.calibration_config = calibration_config or config.calibration

        self._lock = threading.Lock()
        self._defaults = default_threshold_set(self.threshold_config)
        self._thresholds = self._defaults
        self._baseline = UserBaseline()
        self._phase = CalibrationPhase.UNCALIBRATED

        # (ear, |yaw|, |pitch|); only the most recent min_samples are kept
        self._samples: RingHistory[Tuple[float, float, float]] = RingHistory(
            max(1, self.calibration_config.min_samples))

        self._load_saved_thresholds()

    @property
    def thresholds(self) -> ThresholdSet:
        with self._lock:
            return self._thresholds

    @property
    def baseline(self) -> UserBaseline:
        with self._lock:
            return self._baseline

    @property
    def phase(self) -> CalibrationPhase:
        with self._lock:
            return self._phase

    def start_calibration(self) -> None:
        """Begin collecting calibration samples, discarding any previous ones."""
        with self._lock:
            self._samples.clear()
            self._phase = CalibrationPhase.CALIBRATING
        logger.log_calibration("started", 0)

    def add_calibration_sample(self, features: AttentionFeatures) -> bool:
        """
        Record a sample taken while the user is attentive.

        Only frames with open eyes and an attentive head pose are kept, and
        only the most recent ``min_samples`` of them are retained.

        Returns:
            True if the sample was accepted
        """
        if not (features.are_eyes_open and features.is_head_pose_attentive):
            return False

        with self._lock:
            self._samples.push((features.average_ear, abs(features.head_pose_yaw), abs(features.head_pose_pitch)))
        return True

    def sample_count(self) -> int:
        with self._lock:
            return len(self._samples)

    def clear_samples(self) -> None:
        """Drop collected samples without changing the calibration phase."""
        with self._lock:
            self._samples.clear()

    def finish_calibration(self) -> bool:
        """
        Derive personalized thresholds from the collected samples.

        Returns:
            False when too few samples were collected (samples are kept so
            the caller can keep collecting and retry), True otherwise
        """
        with self._lock:
            count = len(self._samples)
            if count < self.calibration_config.min_samples:
                logger.log_calibration("finish rejected", count, success=False)
                return False

            avg_ear, avg_yaw, avg_pitch = np.mean(np.array(self._samples.snapshot()), axis=0)
            baseline = UserBaseline(
                avg_ear=float(avg_ear),
                avg_yaw_range=float(avg_yaw),
                avg_pitch_range=float(avg_pitch),
                calibration_count=count,
                is_calibrated=True,
            )
            self._baseline = baseline
            self._thresholds = self._derive_from_baseline(baseline, self._thresholds)
            self._phase = CalibrationPhase.CALIBRATED

            self._samples.clear()

        self._save_thresholds()
        logger.log_calibration("finished", count, success=True)
        return True

    def _derive_from_baseline(self, baseline: UserBaseline, current: ThresholdSet) -> ThresholdSet:
        cal = self.calibration_config
        ear = clamp(baseline.avg_ear * cal.ear_factor, *cal.ear_range)
        yaw = clamp(baseline.avg_yaw_range * cal.pose_factor, *cal.yaw_range)
        pitch = clamp(baseline.avg_pitch_range * cal.pose_factor, *cal.pitch_range)

        ear_ratio = baseline.avg_ear / self.threshold_config.ear
        blink = clamp(self.threshold_config.blink * ear_ratio, *cal.blink_range)

        return current.copy(ear=ear, yaw=yaw, pitch=pitch, blink=blink)

    def calibration_progress(self) -> float:
        """Fraction of the required samples collected so far, in [0, 1]."""
        return clamp01(self.sample_count() / float(self.calibration_config.min_samples))

    def is_calibrated(self) -> bool:
        return self.baseline.is_calibrated

    def adapt_online(self, features: AttentionFeatures, actual_state: AttentionState,
                     predicted_state: AttentionState) -> bool:
        """
        Nudge thresholds after a misclassification reported by the caller.

        Returns:
            True if a threshold changed
        """
        if actual_state == predicted_state or not self.is_calibrated():
            return False

        # Read-modify-write under a single lock acquisition
        with self._lock:
            updated = self._adapted(self._thresholds, actual_state, predicted_state)
            if updated is None:
                return False
            self._thresholds = updated

        self._save_thresholds()
        logger.debug(f"Online adaptation ({predicted_state.name} -> {actual_state.name}): "
                     f"EAR={updated.ear:.3f}, Yaw={updated.yaw:.1f}, Pitch={updated.pitch:.1f}")
        return True

    def _adapted(self, current: ThresholdSet, actual_state: AttentionState,
                 predicted_state: AttentionState) -> Optional[ThresholdSet]:
        rate = self.calibration_config.adaptation_rate
        ear_low, ear_high = self.calibration_config.ear_range

        if predicted_state == AttentionState.DROWSY_FATIGUED and actual_state == AttentionState.ATTENTIVE:
            return current.copy(ear=min(current.ear * (1 + rate), ear_high))
        if predicted_state == AttentionState.ATTENTIVE and actual_state == AttentionState.DROWSY_FATIGUED:
            return current.copy(ear=max(current.ear * (1 - rate), ear_low))
        if predicted_state == AttentionState.DISTRACTED_LOOKING_AWAY and actual_state == AttentionState.ATTENTIVE:
            return current.copy(
                yaw=min(current.yaw * (1 + rate), self.calibration_config.yaw_range[1]),
                pitch=min(current.pitch * (1 + rate), self.calibration_config.pitch_range[1]),
            )
        return None

    def adjust_for_lighting(self, brightness: float) -> None:
        """Set the lighting multiplier from ambient brightness in [0, 1]."""
        cal = self.calibration_config
        if brightness < cal.dim_brightness:
            factor = cal.dim_lighting_factor
        elif brightness > cal.bright_brightness:
            factor = cal.bright_lighting_factor
        else:
            factor = 1.0

        with self._lock:
            if self._thresholds.lighting_factor != factor:
                self._thresholds = self._thresholds.copy(lighting_factor=factor)

    def adjust_for_distance(self, face_size: float) -> None:
        """Set the distance multiplier from normalized face size in [0, 1]."""
        cal = self.calibration_config
        if face_size < cal.far_face_size:
            factor = cal.far_distance_factor
        elif face_size > cal.near_face_size:
            factor = cal.near_distance_factor
        else:
            factor = 1.0

        with self._lock:
            if self._thresholds.distance_factor != factor:
                self._thresholds = self._thresholds.copy(distance_factor=factor)

    def adjusted_ear_threshold(self) -> float:
        return self.thresholds.adjusted_ear

    def adjusted_yaw_threshold(self) -> float:
        return self.thresholds.adjusted_yaw

    def adjusted_pitch_threshold(self) -> float:
        return self.thresholds.adjusted_pitch

    def reset_to_defaults(self) -> None:
        """Forget calibration, restore default thresholds and clear the store."""
        with self._lock:
            self._thresholds = self._defaults
            self._baseline = UserBaseline()
            self._phase = CalibrationPhase.UNCALIBRATED
            self._samples.clear()

        self.store.clear()
        logger.info("Thresholds reset to defaults")

    def _save_thresholds(self) -> None:
        thresholds = self.thresholds
        baseline = self.baseline

        self.store.set(KEY_EAR_THRESHOLD, thresholds.ear)
        self.store.set(KEY_YAW_THRESHOLD, thresholds.yaw)
        self.store.set(KEY_PITCH_THRESHOLD, thresholds.pitch)

        self.store.set(KEY_BASELINE_EAR, baseline.avg_ear)
        self.store.set(KEY_BASELINE_YAW, baseline.avg_yaw_range)
        self.store.set(KEY_BASELINE_PITCH, baseline.avg_pitch_range)
        self.store.set(KEY_BASELINE_COUNT, float(baseline.calibration_count))
        self.store.set(KEY_BASELINE_CALIBRATED, 1.0 if baseline.is_calibrated else 0.0)

    def _load_saved_thresholds(self) -> None:
        defaults = UserBaseline()
        baseline = UserBaseline(
            avg_ear=self.store.get(KEY_BASELINE_EAR, defaults.avg_ear),
            avg_yaw_range=self.store.get(KEY_BASELINE_YAW, defaults.avg_yaw_range),
            avg_pitch_range=self.store.get(KEY_BASELINE_PITCH, defaults.avg_pitch_range),
            calibration_count=int(self.store.get(KEY_BASELINE_COUNT, 0.0)),
            is_calibrated=self.store.get(KEY_BASELINE_CALIBRATED, 0.0) >= 0.5,
        )

        thresholds = self._defaults
        if baseline.is_calibrated:
            # Blink is not persisted; it follows from the baseline
            thresholds = self._derive_from_baseline(baseline, thresholds)
        thresholds = thresholds.copy(
            ear=self.store.get(KEY_EAR_THRESHOLD, thresholds.ear),
            yaw=self.store.get(KEY_YAW_THRESHOLD, thresholds.yaw),
            pitch=self.store.get(KEY_PITCH_THRESHOLD, thresholds.pitch),
        )

        with self._lock:
            self._baseline = baseline
            self._thresholds = thresholds
            self._phase = CalibrationPhase.CALIBRATED if baseline.is_calibrated else CalibrationPhase.UNCALIBRATED

        if baseline.is_calibrated:
            logger.info(f"Loaded calibrated thresholds: EAR={thresholds.ear:.3f}, "
                        f"Yaw={thresholds.yaw:.1f}, Pitch={thresholds.pitch:.1f}")

    def threshold_info(self) -> str:
        """Current adjusted thresholds, for debugging."""
        thresholds = self.thresholds
        return (
            f"EAR: {thresholds.adjusted_ear:.3f}\n"
            f"Yaw: {thresholds.adjusted_yaw:.1f}°\n"
            f"Pitch: {thresholds.adjusted_pitch:.1f}°\n"
            f"Light Factor: {thresholds.lighting_factor:.2f}\n"
            f"Distance Factor: {thresholds.distance_factor:.2f}\n"
            f"User Calibrated: {self.is_calibrated()}"
        )
