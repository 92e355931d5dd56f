"""
Tests for frame admission, load shedding and UI gating.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from engagement_monitor.core.frame_governor import FrameGovernor
from engagement_monitor.core.models import AttentionState, ExpressionState
from engagement_monitor.utils.config import GovernorConfig
from landmark_fixtures import FakeClock

ATTENTIVE = AttentionState.ATTENTIVE
NEUTRAL = ExpressionState.NEUTRAL


class TestFrameGovernor(unittest.TestCase):
    """Test FrameGovernor against a manual clock."""

    def setUp(self):
        """Set up a governor with a fake clock."""
        self.clock = FakeClock(start=1000.0)
        self.governor = FrameGovernor(clock=self.clock)

    def test_first_frame_admitted(self):
        """Nothing has been processed yet, so the first frame always runs."""
        self.assertTrue(self.governor.should_process_frame())

    def test_rate_limit(self):
        """Frames closer than the minimum interval are dropped."""
        self.assertTrue(self.governor.should_process_frame())
        self.clock.advance(30)
        self.assertFalse(self.governor.should_process_frame())
        self.clock.advance(40)
        self.assertTrue(self.governor.should_process_frame())

        stats = self.governor.performance_stats()
        self.assertEqual(stats.total_frames, 3)
        self.assertEqual(stats.processed_frames, 2)
        self.assertAlmostEqual(stats.frame_skip_percentage, 100.0 / 3.0)

    def test_actual_fps(self):
        """Throughput is derived from admitted frame intervals."""
        for _ in range(5):
            self.governor.should_process_frame()
            self.clock.advance(100)
        self.assertEqual(self.governor.performance_stats().actual_fps, 10)

    def test_load_shedding(self):
        """Under load two of every three admissible frames are shed."""
        start = self.clock()
        self.clock.advance(60)
        self.governor.record_processing_time(start)
        self.assertAlmostEqual(self.governor.average_processing_time, 60.0)

        decisions = []
        for _ in range(6):
            self.clock.advance(70)
            decisions.append(self.governor.should_process_frame())
        self.assertEqual(decisions, [False, False, True, False, False, True])

    def test_shed_frames_restart_interval(self):
        """A shed frame restarts the interval clock."""
        start = self.clock()
        self.clock.advance(60)
        self.governor.record_processing_time(start)

        self.clock.advance(70)
        self.assertFalse(self.governor.should_process_frame())
        self.clock.advance(30)
        self.assertFalse(self.governor.should_process_frame())
        self.assertEqual(self.governor.frame_skip_counter, 1)

    def test_ui_interval(self):
        """UI updates are spaced by the update interval."""
        self.assertTrue(self.governor.should_update_ui())
        self.governor.mark_ui_updated()
        self.clock.advance(150)
        self.assertFalse(self.governor.should_update_ui())
        self.clock.advance(50)
        self.assertTrue(self.governor.should_update_ui())

    def test_significant_change(self):
        """State changes or engagement moves beyond 0.05 are significant."""
        self.assertTrue(self.governor.has_significant_change(ATTENTIVE, NEUTRAL, 0.5))
        self.governor.cache_status_text("status", ATTENTIVE, NEUTRAL, 0.5)

        self.assertFalse(self.governor.has_significant_change(ATTENTIVE, NEUTRAL, 0.53))
        self.assertTrue(self.governor.has_significant_change(ATTENTIVE, NEUTRAL, 0.56))
        self.assertTrue(self.governor.has_significant_change(AttentionState.YAWNING, NEUTRAL, 0.5))
        self.assertTrue(self.governor.has_significant_change(ATTENTIVE, ExpressionState.BORED, 0.5))

    def test_significance_threshold_configurable(self):
        """The engagement significance threshold comes from configuration."""
        governor = FrameGovernor(GovernorConfig(significant_change=0.2), clock=self.clock)
        governor.cache_status_text("status", ATTENTIVE, NEUTRAL, 0.5)

        self.assertFalse(governor.has_significant_change(ATTENTIVE, NEUTRAL, 0.65))
        self.assertTrue(governor.has_significant_change(ATTENTIVE, NEUTRAL, 0.75))

    def test_cached_status_validity(self):
        """Cached text is served only while fresh."""
        self.assertIsNone(self.governor.cached_status_text())
        self.governor.cache_status_text("status", ATTENTIVE, NEUTRAL, 0.5)

        self.clock.advance(99)
        self.assertEqual(self.governor.cached_status_text(), "status")
        self.clock.advance(1)
        self.assertIsNone(self.governor.cached_status_text())

    def test_processing_stats(self):
        """Processing times feed average, min and max."""
        for duration in (10, 30, 20):
            start = self.clock()
            self.clock.advance(duration)
            self.governor.record_processing_time(start)

        stats = self.governor.performance_stats()
        self.assertAlmostEqual(stats.average_processing_time, 20.0)
        self.assertEqual(stats.max_processing_time, 30)
        self.assertEqual(stats.min_processing_time, 10)
        self.assertEqual(stats.target_fps, 15)
        self.assertIn('avg_processing_time_ms', stats.to_dict())

    def test_reset(self):
        """Reset restores the initial state."""
        self.governor.should_process_frame()
        self.governor.cache_status_text("status", ATTENTIVE, NEUTRAL, 0.5)
        self.governor.mark_ui_updated()
        start = self.clock()
        self.clock.advance(60)
        self.governor.record_processing_time(start)

        self.governor.reset()

        stats = self.governor.performance_stats()
        self.assertEqual(stats.total_frames, 0)
        self.assertEqual(stats.average_processing_time, 0.0)
        self.assertEqual(stats.frame_skip_percentage, 0.0)
        self.assertIsNone(self.governor.cached_status_text())
        self.assertTrue(self.governor.should_update_ui())
        self.assertTrue(self.governor.should_process_frame())


if __name__ == '__main__':
    unittest.main()
