"""
Frame Governance Module

Controls how often frames are processed and how often the UI is refreshed.
Frames arriving faster than the target rate are dropped, extra frames are
shed while processing is slow, and status updates are only pushed when
enough time has passed and the result changed noticeably.
"""

import threading
import time
from typing import Callable, Optional

from .models import AttentionState, ExpressionState, PerformanceStats
from .ring_buffer import RingHistory
from ..utils.config import GovernorConfig, config
from ..utils.formatting import is_significant_change


def monotonic_millis() -> float:
    """Monotonic clock in milliseconds."""
    return time.monotonic() * 1000.0


class FrameGovernor:
    """Frame admission, UI gating, status caching and throughput statistics."""

    def __init__(self, governor_config: Optional[GovernorConfig] = None,
                 clock: Optional[Callable[[], float]] = None):
        """
        Initialize frame governor.

        Args:
            governor_config: Target rate and gating constants
            clock: Millisecond clock, monotonic by default
        """
        self.config = governor_config or config.governor
        self.clock = clock or monotonic_millis
        self.min_frame_interval_ms = 1000.0 / self.config.target_fps

        self._lock = threading.Lock()
        self.frame_intervals: RingHistory[float] = RingHistory(self.config.interval_window)
        self.processing_times: RingHistory[float] = RingHistory(self.config.interval_window)
        self._init_state()

    def _init_state(self) -> None:
        self.last_process_time: Optional[float] = None
        self.last_ui_update_time: Optional[float] = None
        self.frame_skip_counter = 0

        self.frame_intervals.clear()
        self.actual_frame_interval = self.min_frame_interval_ms

        self.processing_times.clear()
        self.average_processing_time = 0.0

        self.total_frames = 0
        self.skipped_frames = 0

        self._cached_status_text: Optional[str] = None
        self._cached_status_time: Optional[float] = None
        self._last_attention_state: Optional[AttentionState] = None
        self._last_expression_state: Optional[ExpressionState] = None
        self._last_engagement = 0.0

    def should_process_frame(self) -> bool:
        """
        Decide whether the current frame is processed.

        Returns:
            False when the frame arrives too early or is shed under load
        """
        current_time = self.clock()
        self.total_frames += 1

        if self.last_process_time is not None:
            elapsed = current_time - self.last_process_time
            if elapsed < self.min_frame_interval_ms:
                self.skipped_frames += 1
                return False

            self.frame_intervals.push(elapsed)
            intervals = self.frame_intervals.snapshot()
            self.actual_frame_interval = sum(intervals) / len(intervals)

        if self.average_processing_time > self.min_frame_interval_ms * self.config.load_factor:
            self.frame_skip_counter += 1
            if self.frame_skip_counter < self.config.skip_frame_threshold:
                # Dropped frames still restart the interval clock
                self.last_process_time = current_time
                self.skipped_frames += 1
                return False
            self.frame_skip_counter = 0

        self.last_process_time = current_time
        return True

    def should_update_ui(self) -> bool:
        if self.last_ui_update_time is None:
            return True
        return self.clock() - self.last_ui_update_time >= self.config.ui_update_interval_ms

    def mark_ui_updated(self) -> None:
        self.last_ui_update_time = self.clock()

    def has_significant_change(self, attention: AttentionState, expression: ExpressionState,
                               engagement: float) -> bool:
        """True if either state changed or engagement moved beyond the significance threshold."""
        with self._lock:
            if attention != self._last_attention_state or expression != self._last_expression_state:
                return True
            return is_significant_change(self._last_engagement, engagement, self.config.significant_change)

    def cached_status_text(self) -> Optional[str]:
        """Last status text while it is still fresh, else None."""
        with self._lock:
            if self._cached_status_text is None or self._cached_status_time is None:
                return None
            if self.clock() - self._cached_status_time < self.config.cache_validity_ms:
                return self._cached_status_text
            return None

    def cache_status_text(self, text: str, attention: AttentionState, expression: ExpressionState,
                          engagement: float) -> None:
        with self._lock:
            self._cached_status_text = text
            self._cached_status_time = self.clock()
            self._last_attention_state = attention
            self._last_expression_state = expression
            self._last_engagement = engagement

    def record_processing_time(self, start_time: float) -> None:
        """Record the time spent since ``start_time`` (same clock)."""
        self.processing_times.push(self.clock() - start_time)
        times = self.processing_times.snapshot()
        self.average_processing_time = sum(times) / len(times)

    def performance_stats(self) -> PerformanceStats:
        times = self.processing_times.snapshot()
        skip_percentage = self.skipped_frames * 100.0 / self.total_frames if self.total_frames > 0 else 0.0
        actual_fps = int(1000.0 / self.actual_frame_interval) if self.actual_frame_interval > 0 else 0

        return PerformanceStats(
            average_processing_time=self.average_processing_time,
            max_processing_time=max(times) if times else 0.0,
            min_processing_time=min(times) if times else 0.0,
            target_fps=self.config.target_fps,
            actual_fps=actual_fps,
            frame_skip_rate=self.frame_skip_counter,
            frame_skip_percentage=skip_percentage,
            total_frames=self.total_frames,
            processed_frames=self.total_frames - self.skipped_frames,
        )

    def reset(self) -> None:
        """Restore counters, timers and the status cache to their initial state."""
        with self._lock:
            self._init_state()
