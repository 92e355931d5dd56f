"""
Engagement Monitor

Streaming facial engagement analysis: turns per-frame face-mesh landmarks,
head transforms and blendshape activations into smoothed attention and
expression verdicts and an overall engagement score.
"""

__version__ = "1.0.0"
__author__ = "Engagement Monitor Team"
__description__ = "Streaming attention, expression and engagement analysis from facial landmarks"
