"""
Eye Aspect Ratio Module

Computes a bias-corrected, temporally smoothed eye aspect ratio (EAR) for each
eye from face-mesh landmarks. Combines the classic six-point EAR with a
sixteen-point contour estimate, corrects for head rotation and weights the
two eyes by how squarely each faces the camera.
"""

import math
import numpy as np
from typing import Optional, Sequence, Tuple

from .models import EyeIndices, clamp
from .ring_buffer import RingHistory
from ..utils.config import EARConfig, config
from ..utils.memory_pool import ScratchPool


def landmarks_to_array(landmarks) -> Optional[np.ndarray]:
    """
    Convert landmark input to an (N, 3) float array.

    Accepts an array-like of points (x, y[, z]) or objects exposing x/y/z as
    attributes or accessor methods. Returns None for empty input.
    """
    if landmarks is None or len(landmarks) == 0:
        return None

    if isinstance(landmarks, np.ndarray):
        points = landmarks.astype(np.float64, copy=False)
    else:
        first = landmarks[0]
        if hasattr(first, 'x'):
            points = np.array([_point_xyz(p) for p in landmarks], dtype=np.float64)
        else:
            points = np.asarray(landmarks, dtype=np.float64)

    if points.ndim != 2 or points.shape[1] < 2:
        return None
    if points.shape[1] == 2:
        points = np.hstack([points, np.zeros((points.shape[0], 1))])
    return points[:, :3]


def _point_xyz(point) -> Tuple[float, float, float]:
    coords = []
    for axis in ('x', 'y', 'z'):
        value = getattr(point, axis, 0.0)
        coords.append(value() if callable(value) else value)
    return coords[0], coords[1], coords[2]


class EARCalculator:
    """Multi-point EAR estimation with head-pose correction and smoothing."""

    def __init__(self, ear_config: Optional[EARConfig] = None, pool: Optional[ScratchPool] = None):
        """
        Initialize EAR calculator.

        Args:
            ear_config: Landmark indices and correction constants
                (defaults to the global configuration)
            pool: Scratch pool for per-frame distance arrays
        """
        self.config = ear_config or config.ear
        self.pool = pool if pool is not None else ScratchPool()
        self.left_eye = EyeIndices.from_sequence(self.config.left_eye_indices)
        self.right_eye = EyeIndices.from_sequence(self.config.right_eye_indices)
        self.left_eye_extended = tuple(self.config.left_eye_extended)
        self.right_eye_extended = tuple(self.config.right_eye_extended)

        self.required_landmarks = max(
            self.left_eye.max_index(),
            self.right_eye.max_index(),
            max(self.left_eye_extended),
            max(self.right_eye_extended),
        ) + 1

        self.left_history: RingHistory[float] = RingHistory(self.config.history_size)
        self.right_history: RingHistory[float] = RingHistory(self.config.history_size)

    def calculate(self, landmarks, yaw: float = 0.0, pitch: float = 0.0,
                  roll: float = 0.0) -> Tuple[float, float, float]:
        """
        Calculate smoothed EAR for both eyes.

        Args:
            landmarks: Face-mesh landmarks (468 or more points)
            yaw: Head yaw in degrees
            pitch: Head pitch in degrees
            roll: Head roll in degrees

        Returns:
            Tuple of (left EAR, right EAR, pose-weighted average EAR); all
            zeros when the landmark set is too small
        """
        points = landmarks_to_array(landmarks)
        if points is None or len(points) < self.required_landmarks:
            return 0.0, 0.0, 0.0

        left_ear = self._combined_ear(points, self.left_eye, self.left_eye_extended)
        right_ear = self._combined_ear(points, self.right_eye, self.right_eye_extended)

        corrected_left = self._apply_head_pose_correction(left_ear, yaw, pitch, roll)
        corrected_right = self._apply_head_pose_correction(right_ear, yaw, pitch, roll)

        smoothed_left = self._apply_smoothing(corrected_left, self.left_history)
        smoothed_right = self._apply_smoothing(corrected_right, self.right_history)

        average = self._weighted_average(smoothed_left, smoothed_right, yaw)

        return smoothed_left, smoothed_right, average

    def _distance(self, a: np.ndarray, b: np.ndarray) -> float:
        """3D distance with the noisy depth axis down-weighted."""
        delta = a - b
        return math.sqrt(delta[0] ** 2 + delta[1] ** 2 + (delta[2] * self.config.depth_weight) ** 2)

    def _combined_ear(self, points: np.ndarray, indices: EyeIndices, extended: Sequence[int]) -> float:
        basic = self._basic_ear(points, indices)
        extended_ear = self._extended_ear(points, extended)
        return basic * self.config.basic_weight + extended_ear * self.config.extended_weight

    def _basic_ear(self, points: np.ndarray, indices: EyeIndices) -> float:
        vertical_1 = self._distance(points[indices.p2], points[indices.p6])
        vertical_2 = self._distance(points[indices.p3], points[indices.p5])
        horizontal = self._distance(points[indices.p1], points[indices.p4])

        if horizontal < self.config.min_horizontal_distance:
            return 0.0

        return (vertical_1 + vertical_2) / (2.0 * horizontal)

    def _extended_ear(self, points: np.ndarray, indices: Sequence[int]) -> float:
        if len(indices) < 8:
            return 0.0

        half = len(indices) // 2
        upper = points[list(indices[:half])]
        lower = points[list(indices[half:half * 2])]

        delta = upper - lower
        delta[:, 2] *= self.config.depth_weight
        with self.pool.float_array(half) as distances:
            vertical = distances[:half]
            vertical[:] = np.linalg.norm(delta, axis=1)
            avg_vertical = float(vertical.mean())

        # Contour starts at one corner and reaches the other at its midpoint
        horizontal = self._distance(points[indices[0]], points[indices[half]])
        if horizontal <= self.config.min_horizontal_distance:
            return 0.0

        return avg_vertical / horizontal

    def _apply_head_pose_correction(self, ear: float, yaw: float, pitch: float, roll: float) -> float:
        yaw_rad = math.radians(yaw)
        pitch_rad = math.radians(pitch)
        roll_rad = math.radians(roll)

        factor = 1.0
        factor *= 1.0 + abs(yaw_rad) * self.config.yaw_correction
        # Looking up enlarges the eye opening, looking down shrinks it
        factor *= 1.0 + pitch_rad * self.config.pitch_correction
        factor *= 1.0 + abs(roll_rad) * self.config.roll_correction

        factor = clamp(factor, self.config.min_correction, self.config.max_correction)
        return clamp(ear * factor, self.config.min_ear, self.config.max_ear)

    def _apply_smoothing(self, current: float, history: RingHistory) -> float:
        history.push(current)
        values = history.snapshot()
        if len(values) < 2:
            return current

        alpha = self.config.smoothing_alpha
        smoothed = current
        for value in reversed(values[:-1]):
            smoothed = alpha * value + (1.0 - alpha) * smoothed

        return clamp(smoothed, self.config.min_ear, self.config.max_ear)

    def _weighted_average(self, left: float, right: float, yaw: float) -> float:
        left_weight = (math.cos(math.radians(yaw)) + 1.0) / 2.0
        right_weight = 1.0 - left_weight
        average = left * left_weight + right * right_weight
        return clamp(average, self.config.min_ear, self.config.max_ear)

    def detect_blink(self, current_ear: float, threshold: float) -> bool:
        """Plain threshold blink test."""
        return current_ear < threshold

    def detect_blink_advanced(self, left_ear: float, right_ear: float, threshold: float,
                              change_rate_threshold: float = 0.05) -> Tuple[bool, float]:
        """
        Detect a blink from EAR level and its most recent rate of change.

        Returns:
            Tuple of (is_blink, confidence in [0, 1])
        """
        average = (left_ear + right_ear) / 2.0
        below_threshold = average < threshold

        left_values = self.left_history.snapshot()
        right_values = self.right_history.snapshot()

        change_rate = 0.0
        if len(left_values) >= 2 and len(right_values) >= 2:
            left_change = abs(left_values[-1] - left_values[-2])
            right_change = abs(right_values[-1] - right_values[-2])
            change_rate = (left_change + right_change) / 2.0

        is_blink = below_threshold and change_rate > change_rate_threshold
        if not is_blink or threshold <= 0:
            return is_blink, 0.0

        threshold_confidence = (threshold - average) / threshold
        if change_rate_threshold > 0:
            change_confidence = min(change_rate / (change_rate_threshold * 2.0), 1.0)
        else:
            change_confidence = 1.0
        confidence = clamp(threshold_confidence * 0.6 + change_confidence * 0.4, 0.0, 1.0)
        return True, confidence

    def reset(self) -> None:
        """Clear both eye histories."""
        self.left_history.clear()
        self.right_history.clear()

    def stats(self) -> str:
        """Human-readable summary of the EAR histories."""
        left_values = self.left_history.snapshot()
        right_values = self.right_history.snapshot()
        if not left_values or not right_values:
            return "No EAR data available"

        return (
            f"Left EAR: avg={np.mean(left_values):.3f}, current={left_values[-1]:.3f}\n"
            f"Right EAR: avg={np.mean(right_values):.3f}, current={right_values[-1]:.3f}\n"
            f"History size: L={len(left_values)}, R={len(right_values)}"
        )
