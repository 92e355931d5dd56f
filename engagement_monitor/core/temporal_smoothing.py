"""
Temporal Smoothing Module

Suppresses single-frame flicker in attention verdicts with weighted voting
over a short history and a hysteresis rule for state changes. Eye aspect
ratio and head pose are smoothed with the same weight schedule.
"""

from typing import Dict, List, Optional, Sequence, Tuple

from .models import AttentionResult, AttentionState, clamp01
from .ring_buffer import RingHistory
from ..utils.config import SmoothingConfig, config


class TemporalSmoother:
    """Weighted-vote smoother with hysteresis for attention verdicts."""

    def __init__(self, smoothing_config: Optional[SmoothingConfig] = None):
        """
        Initialize temporal smoother.

        Args:
            smoothing_config: Window size, weight schedule and hysteresis
                constants (defaults to the global configuration)
        """
        self.config = smoothing_config or config.smoothing
        self.weights: Tuple[float, ...] = tuple(self.config.weights)

        self.attention_history: RingHistory[AttentionResult] = RingHistory(self.config.window_size)
        self.ear_history: RingHistory[float] = RingHistory(self.config.window_size)
        self.head_pose_history: RingHistory[Tuple[float, float, float]] = RingHistory(self.config.window_size)

        self.current_state_count = 0
        self.last_stable_state = AttentionState.UNKNOWN

    def _weight(self, index: int) -> float:
        # Indices past the schedule reuse the newest weight
        if index < len(self.weights):
            return self.weights[index]
        return self.weights[-1]

    def add_and_smooth(self, result: AttentionResult) -> AttentionResult:
        """
        Add a raw verdict and return the smoothed one.

        Args:
            result: Raw classifier verdict for the current frame

        Returns:
            AttentionResult with voted state, smoothed features and a
            consistency-based confidence
        """
        features = result.features
        self.attention_history.push(result)
        self.ear_history.push(features.average_ear)
        self.head_pose_history.push((features.head_pose_yaw, features.head_pose_pitch, features.head_pose_roll))

        smoothed_state = self._smooth_state(result)
        smoothed_ear = self._smooth_ear()
        yaw, pitch, roll = self._smooth_head_pose()

        # Both eye values follow the smoothed average; the eyes-open flag uses a
        # fixed cutoff so recalibration does not disturb the displayed state
        smoothed_features = features.copy(
            average_ear=smoothed_ear,
            left_eye_ear=smoothed_ear,
            right_eye_ear=smoothed_ear,
            head_pose_yaw=yaw,
            head_pose_pitch=pitch,
            head_pose_roll=roll,
            are_eyes_open=smoothed_ear > self.config.eyes_open_cutoff,
        )

        return AttentionResult(
            state=smoothed_state,
            confidence=self._smoothed_confidence(),
            features=smoothed_features,
            timestamp=result.timestamp,
        )

    def _smooth_state(self, current: AttentionResult) -> AttentionState:
        history = self.attention_history.snapshot()
        if len(history) < self.config.min_history:
            return current.state

        votes: Dict[AttentionState, float] = {}
        for index, item in enumerate(history):
            votes[item.state] = votes.get(item.state, 0.0) + self._weight(index)

        # First state reaching the maximum wins ties
        winning_state = max(votes, key=votes.get)
        total = sum(votes.values())
        vote_ratio = votes[winning_state] / total if total > 0 else 0.0

        if winning_state != self.last_stable_state:
            self.current_state_count = 1
            if vote_ratio >= self.config.state_change_threshold:
                self.last_stable_state = winning_state
                return winning_state
            if self.last_stable_state != AttentionState.UNKNOWN:
                return self.last_stable_state
            return winning_state

        self.current_state_count += 1
        return winning_state

    def _weighted_mean(self, values: Sequence[float]) -> float:
        weighted_sum = 0.0
        total_weight = 0.0
        for index, value in enumerate(values):
            weight = self._weight(index)
            weighted_sum += value * weight
            total_weight += weight
        if total_weight > 0:
            return weighted_sum / total_weight
        return values[-1]

    def _smooth_ear(self) -> float:
        values = self.ear_history.snapshot()
        if not values:
            return 0.0
        return self._weighted_mean(values)

    def _smooth_head_pose(self) -> Tuple[float, float, float]:
        poses = self.head_pose_history.snapshot()
        if not poses:
            return 0.0, 0.0, 0.0
        return (
            self._weighted_mean([pose[0] for pose in poses]),
            self._weighted_mean([pose[1] for pose in poses]),
            self._weighted_mean([pose[2] for pose in poses]),
        )

    def _smoothed_confidence(self) -> float:
        history: List[AttentionResult] = self.attention_history.snapshot()
        if not history:
            return 0.0

        current_state = history[-1].state
        consistency = sum(1 for item in history if item.state == current_state) / len(history)
        avg_confidence = sum(item.confidence for item in history) / len(history)

        return clamp01(consistency * self.config.consistency_weight
                       + avg_confidence * self.config.confidence_weight)

    def reset(self) -> None:
        """Clear all histories and the hysteresis state."""
        self.attention_history.clear()
        self.ear_history.clear()
        self.head_pose_history.clear()
        self.current_state_count = 0
        self.last_stable_state = AttentionState.UNKNOWN

    def stability(self) -> int:
        """Number of consecutive frames the smoothed state has held."""
        return self.current_state_count

    def is_stable(self) -> bool:
        return self.current_state_count >= self.config.stable_frames
