"""
Tests for engagement scoring.
"""

import dataclasses
import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from engagement_monitor.core.engagement import EngagementCombiner
from engagement_monitor.core.models import (
    AttentionFeatures, AttentionResult, AttentionState, ExpressionResult, ExpressionState,
)
from engagement_monitor.utils.config import EngagementConfig


def attention(state: AttentionState, confidence: float = 1.0) -> AttentionResult:
    return AttentionResult(state=state, confidence=confidence, features=AttentionFeatures())


def expression(state: ExpressionState, confidence: float = 1.0, intensity: float = 0.0) -> ExpressionResult:
    return ExpressionResult(primary_expression=state, confidence=confidence, intensity=intensity)


class TestEngagementCombiner(unittest.TestCase):
    """Test the engagement formula and tables."""

    def setUp(self):
        """Set up a combiner with default tables."""
        self.combiner = EngagementCombiner()

    def test_formula(self):
        """Weighted sum scaled by both confidences."""
        score = self.combiner.score(
            attention(AttentionState.ATTENTIVE, confidence=0.9),
            expression(ExpressionState.SMILING, confidence=0.8, intensity=0.5),
        )
        expected = (1.0 * 0.6 + 0.8 * 0.4 * 0.75) * 0.9 * 0.8
        self.assertAlmostEqual(score, expected)

    def test_maximum(self):
        """Fully confident, excited and attentive is full engagement."""
        score = self.combiner.score(attention(AttentionState.ATTENTIVE),
                                    expression(ExpressionState.EXCITED, intensity=1.0))
        self.assertAlmostEqual(score, 1.0)

    def test_laughing_scores_below_smiling(self):
        """Laughing is treated as possible distraction."""
        smiling = self.combiner.score(attention(AttentionState.ATTENTIVE), expression(ExpressionState.SMILING))
        laughing = self.combiner.score(attention(AttentionState.ATTENTIVE), expression(ExpressionState.LAUGHING))
        self.assertLess(laughing, smiling)

    def test_tables_are_exhaustive(self):
        """Every state has a score."""
        for attention_state in AttentionState:
            for expression_state in ExpressionState:
                score = self.combiner.score(attention(attention_state), expression(expression_state, intensity=0.3))
                self.assertGreaterEqual(score, 0.0)
                self.assertLessEqual(score, 1.0)

    def test_configurable_tables(self):
        """Table entries can be overridden."""
        scores = dict(EngagementConfig().expression_scores, LAUGHING=0.8)
        combiner = EngagementCombiner(dataclasses.replace(EngagementConfig(), expression_scores=scores))
        self.assertAlmostEqual(
            combiner.score(attention(AttentionState.ATTENTIVE), expression(ExpressionState.LAUGHING)),
            combiner.score(attention(AttentionState.ATTENTIVE), expression(ExpressionState.SMILING)),
        )

    def test_combine(self):
        """Combine wraps both verdicts with the score."""
        attention_result = attention(AttentionState.DROWSY_FATIGUED, confidence=0.5)
        expression_result = expression(ExpressionState.BORED, confidence=0.5)
        report = self.combiner.combine(attention_result, expression_result)

        self.assertIs(report.attention_result, attention_result)
        self.assertIs(report.expression_result, expression_result)
        self.assertAlmostEqual(report.overall_engagement, (0.2 * 0.6 + 0.2 * 0.4 * 0.5) * 0.25)


if __name__ == '__main__':
    unittest.main()
