"""
Tests for the attention rule cascade.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from engagement_monitor.core.attention_classifier import AttentionClassifier, classify_attention
from engagement_monitor.core.models import AttentionFeatures, AttentionState, BlendshapeFeatures, ThresholdSet


def attentive_features(**changes) -> AttentionFeatures:
    """Frontal, eyes-open features with neutral activations."""
    features = AttentionFeatures(
        left_eye_ear=0.3,
        right_eye_ear=0.3,
        average_ear=0.3,
        is_head_pose_attentive=True,
        are_eyes_open=True,
        confidence=0.8,
    )
    return features.copy(**changes)


class TestAttentionClassifier(unittest.TestCase):
    """Test cascade order and each rule."""

    def setUp(self):
        """Set up default thresholds."""
        self.thresholds = ThresholdSet()

    def classify(self, features: AttentionFeatures) -> AttentionState:
        return classify_attention(features, self.thresholds)

    def test_attentive(self):
        """Frontal open eyes with nothing else is attentive."""
        self.assertEqual(self.classify(attentive_features()), AttentionState.ATTENTIVE)

    def test_yawning_wins(self):
        """Jaw open beats every other rule."""
        features = attentive_features(blendshapes=BlendshapeFeatures(jaw_open=0.8))
        self.assertEqual(self.classify(features), AttentionState.YAWNING)

        features = attentive_features(
            head_pose_yaw=60.0,
            are_eyes_open=False,
            blendshapes=BlendshapeFeatures(jaw_open=0.8, eye_blink_left=0.9, eye_look_out_left=0.9),
        )
        self.assertEqual(self.classify(features), AttentionState.YAWNING)

    def test_head_turned_away(self):
        """Yaw beyond the adjusted threshold is distraction."""
        self.assertEqual(self.classify(attentive_features(head_pose_yaw=-30.0)),
                         AttentionState.DISTRACTED_LOOKING_AWAY)

    def test_environment_factor_scales_yaw(self):
        """The same yaw is tolerated when the environment relaxes thresholds."""
        features = attentive_features(head_pose_yaw=30.0)
        relaxed = self.thresholds.copy(distance_factor=1.3)
        self.assertEqual(classify_attention(features, relaxed), AttentionState.ATTENTIVE)

    def test_looking_sideways(self):
        """Either eye looking out is distraction."""
        features = attentive_features(blendshapes=BlendshapeFeatures(eye_look_out_right=0.5))
        self.assertEqual(self.classify(features), AttentionState.DISTRACTED_LOOKING_AWAY)

    def test_looking_down_needs_pitch(self):
        """Looking down counts only with the head pitched down."""
        blendshapes = BlendshapeFeatures(eye_look_down_left=0.7)
        self.assertEqual(self.classify(attentive_features(blendshapes=blendshapes)),
                         AttentionState.ATTENTIVE)
        self.assertEqual(self.classify(attentive_features(blendshapes=blendshapes, head_pose_pitch=-18.0)),
                         AttentionState.DISTRACTED_LOOKING_AWAY)

    def test_drowsy(self):
        """Closed eyes with blinking activation is drowsiness."""
        features = attentive_features(are_eyes_open=False, blendshapes=BlendshapeFeatures(eye_blink_left=0.6))
        self.assertEqual(self.classify(features), AttentionState.DROWSY_FATIGUED)

    def test_closed_eyes_without_blink(self):
        """Closed eyes alone fall through to unknown."""
        self.assertEqual(self.classify(attentive_features(are_eyes_open=False)), AttentionState.UNKNOWN)

    def test_thinking(self):
        """Brow down, squint and pressed lips while attentive is thinking."""
        blendshapes = BlendshapeFeatures(brow_down_left=0.4, eye_squint_right=0.5, mouth_press_left=0.35)
        self.assertEqual(self.classify(attentive_features(blendshapes=blendshapes)),
                         AttentionState.THINKING_CONCENTRATING)

    def test_partial_thinking_is_attentive(self):
        """All three thinking cues are required."""
        blendshapes = BlendshapeFeatures(brow_down_left=0.4, eye_squint_right=0.5)
        self.assertEqual(self.classify(attentive_features(blendshapes=blendshapes)), AttentionState.ATTENTIVE)

    def test_looking_up(self):
        """Looking up while otherwise attentive is distraction."""
        blendshapes = BlendshapeFeatures(eye_look_up_left=0.6)
        self.assertEqual(self.classify(attentive_features(blendshapes=blendshapes)),
                         AttentionState.DISTRACTED_LOOKING_AWAY)

    def test_confused(self):
        """Furrowed and raised inner brows without an attentive pose is confusion."""
        features = attentive_features(
            is_head_pose_attentive=False,
            blendshapes=BlendshapeFeatures(brow_down_right=0.4, brow_inner_up=0.35),
        )
        self.assertEqual(self.classify(features), AttentionState.CONFUSED)

    def test_missing_pose_is_unknown(self):
        """Without an attentive pose and without other cues the state is unknown."""
        self.assertEqual(self.classify(attentive_features(is_head_pose_attentive=False)), AttentionState.UNKNOWN)

    def test_classifier_object(self):
        """The class form uses its bound thresholds unless given others."""
        classifier = AttentionClassifier(self.thresholds.copy(yawn=0.9))
        features = attentive_features(blendshapes=BlendshapeFeatures(jaw_open=0.8))
        self.assertEqual(classifier.classify(features), AttentionState.ATTENTIVE)
        self.assertEqual(classifier.classify(features, self.thresholds), AttentionState.YAWNING)


if __name__ == '__main__':
    unittest.main()
