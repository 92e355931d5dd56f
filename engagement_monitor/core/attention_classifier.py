"""
Attention Classification Module

Rule cascade mapping one frame of features to an attention state. Rules are
checked in priority order and the first match wins: yawning, looking away,
drowsiness, the attentive family, confusion, then unknown.
"""

from typing import Optional

from .models import AttentionFeatures, AttentionState, ThresholdSet


def classify_attention(features: AttentionFeatures, thresholds: ThresholdSet) -> AttentionState:
    """
    Classify attention state for a single frame.

    Args:
        features: Extracted per-frame features
        thresholds: Threshold snapshot to judge against

    Returns:
        The first matching AttentionState of the cascade
    """
    bs = features.blendshapes

    if bs.jaw_open > thresholds.yawn:
        return AttentionState.YAWNING

    if (abs(features.head_pose_yaw) > thresholds.adjusted_yaw
            or bs.eye_look_out_left > thresholds.look_side
            or bs.eye_look_out_right > thresholds.look_side):
        return AttentionState.DISTRACTED_LOOKING_AWAY

    looking_down = bs.eye_look_down_left > thresholds.look_down or bs.eye_look_down_right > thresholds.look_down
    if looking_down and features.head_pose_pitch < thresholds.look_down_pitch:
        return AttentionState.DISTRACTED_LOOKING_AWAY

    blinking = bs.eye_blink_left > thresholds.blink or bs.eye_blink_right > thresholds.blink
    if not features.are_eyes_open and blinking:
        return AttentionState.DROWSY_FATIGUED

    brow_down = bs.brow_down_left > thresholds.brow_down or bs.brow_down_right > thresholds.brow_down

    if features.is_head_pose_attentive and features.are_eyes_open:
        squinting = bs.eye_squint_left > thresholds.eye_squint or bs.eye_squint_right > thresholds.eye_squint
        pressing = bs.mouth_press_left > thresholds.mouth_press or bs.mouth_press_right > thresholds.mouth_press
        if brow_down and squinting and pressing:
            return AttentionState.THINKING_CONCENTRATING
        if bs.eye_look_up_left > thresholds.look_up or bs.eye_look_up_right > thresholds.look_up:
            return AttentionState.DISTRACTED_LOOKING_AWAY
        return AttentionState.ATTENTIVE

    if brow_down and bs.brow_inner_up > thresholds.brow_inner_up:
        return AttentionState.CONFUSED

    return AttentionState.UNKNOWN


class AttentionClassifier:
    """Attention classifier bound to a default threshold snapshot."""

    def __init__(self, thresholds: Optional[ThresholdSet] = None):
        self.thresholds = thresholds or ThresholdSet()

    def classify(self, features: AttentionFeatures, thresholds: Optional[ThresholdSet] = None) -> AttentionState:
        return classify_attention(features, thresholds or self.thresholds)
