"""
Tests for hysteresis voting and feature smoothing.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from engagement_monitor.core.models import AttentionFeatures, AttentionResult, AttentionState
from engagement_monitor.core.temporal_smoothing import TemporalSmoother

ATTENTIVE = AttentionState.ATTENTIVE
DROWSY = AttentionState.DROWSY_FATIGUED


def raw_result(state: AttentionState, ear: float = 0.3, yaw: float = 0.0,
               confidence: float = 0.8, timestamp: int = 1000) -> AttentionResult:
    features = AttentionFeatures(
        head_pose_yaw=yaw,
        left_eye_ear=ear,
        right_eye_ear=ear,
        average_ear=ear,
        is_head_pose_attentive=True,
        are_eyes_open=True,
        confidence=confidence,
        timestamp=timestamp,
    )
    return AttentionResult(state=state, confidence=confidence, features=features, timestamp=timestamp)


class TestTemporalSmoother(unittest.TestCase):
    """Test TemporalSmoother behavior."""

    def setUp(self):
        """Set up a fresh smoother."""
        self.smoother = TemporalSmoother()

    def feed(self, *states):
        result = None
        for state in states:
            result = self.smoother.add_and_smooth(raw_result(state))
        return result

    def test_passes_through_with_short_history(self):
        """Fewer than three verdicts are not smoothed."""
        self.assertEqual(self.feed(ATTENTIVE).state, ATTENTIVE)
        self.assertEqual(self.feed(DROWSY).state, DROWSY)
        self.assertEqual(self.smoother.stability(), 0)

    def test_single_outlier_suppressed(self):
        """Three attentive frames then one drowsy frame stays attentive."""
        result = self.feed(ATTENTIVE, ATTENTIVE, ATTENTIVE, DROWSY)
        self.assertEqual(result.state, ATTENTIVE)

    def test_hysteresis_after_full_window(self):
        """A differing frame after a full window of one state keeps the prior state."""
        self.feed(*([ATTENTIVE] * 7))
        result = self.feed(DROWSY)
        self.assertEqual(result.state, ATTENTIVE)

    def test_change_requires_supermajority(self):
        """A new state is accepted only once it holds 70% of the vote weight."""
        self.feed(*([ATTENTIVE] * 7))

        # 3 of 7: drowsy wins the vote with a 0.6 share, below the change threshold
        result = self.feed(DROWSY, DROWSY, DROWSY)
        self.assertEqual(result.state, ATTENTIVE)
        self.assertEqual(self.smoother.stability(), 1)

        result = self.feed(DROWSY)
        self.assertEqual(result.state, DROWSY)
        self.assertEqual(self.smoother.stability(), 1)

        self.feed(DROWSY)
        self.assertEqual(self.smoother.stability(), 2)

    def test_stability_counter(self):
        """Counter starts at one on acceptance and grows with each repeated frame."""
        self.feed(ATTENTIVE, ATTENTIVE, ATTENTIVE)
        self.assertEqual(self.smoother.stability(), 1)
        self.assertFalse(self.smoother.is_stable())

        self.feed(ATTENTIVE, ATTENTIVE)
        self.assertEqual(self.smoother.stability(), 3)
        self.assertTrue(self.smoother.is_stable())

    def test_smoothed_features(self):
        """EAR and pose are weighted means; both eyes follow the average."""
        self.smoother.add_and_smooth(raw_result(ATTENTIVE, ear=0.3, yaw=10.0))
        result = self.smoother.add_and_smooth(raw_result(ATTENTIVE, ear=0.1, yaw=-5.0))

        expected_ear = (0.3 * 0.05 + 0.1 * 0.10) / 0.15
        self.assertAlmostEqual(result.features.average_ear, expected_ear)
        self.assertAlmostEqual(result.features.left_eye_ear, expected_ear)
        self.assertAlmostEqual(result.features.right_eye_ear, expected_ear)
        self.assertAlmostEqual(result.features.head_pose_yaw, (10.0 * 0.05 - 5.0 * 0.10) / 0.15)
        self.assertTrue(result.features.are_eyes_open)

    def test_eyes_open_uses_fixed_cutoff(self):
        """Smoothed eyes-open flag compares against 0.15."""
        result = self.smoother.add_and_smooth(raw_result(ATTENTIVE, ear=0.12))
        self.assertFalse(result.features.are_eyes_open)

    def test_confidence(self):
        """Confidence blends state consistency with raw confidence."""
        result = self.feed(ATTENTIVE, ATTENTIVE)
        self.assertAlmostEqual(result.confidence, 0.7 * 1.0 + 0.3 * 0.8)

        result = self.feed(DROWSY)
        self.assertAlmostEqual(result.confidence, 0.7 * (1.0 / 3.0) + 0.3 * 0.8)

        for _ in range(20):
            result = self.smoother.add_and_smooth(raw_result(ATTENTIVE, confidence=1.0))
            self.assertGreaterEqual(result.confidence, 0.0)
            self.assertLessEqual(result.confidence, 1.0)

    def test_timestamp_preserved(self):
        """The smoothed verdict keeps the raw timestamp."""
        result = self.smoother.add_and_smooth(raw_result(ATTENTIVE, timestamp=4242))
        self.assertEqual(result.timestamp, 4242)

    def test_reset_idempotence(self):
        """After reset the smoother matches a fresh instance."""
        self.feed(DROWSY, DROWSY, DROWSY, ATTENTIVE)
        self.smoother.reset()

        fresh = TemporalSmoother()
        frame = raw_result(ATTENTIVE, ear=0.22)
        self.assertEqual(self.smoother.add_and_smooth(frame), fresh.add_and_smooth(frame))
        self.assertEqual(self.smoother.stability(), fresh.stability())


if __name__ == '__main__':
    unittest.main()
