"""
Environment estimation from camera frames.
"""

import cv2
import numpy as np
from typing import Optional

from ..core.models import clamp01

DEFAULT_BRIGHTNESS = 0.5


def estimate_brightness(frame: Optional[np.ndarray]) -> float:
    """
    Mean luminance of a frame in [0, 1].

    Args:
        frame: BGR or single-channel 8-bit image

    Returns:
        Normalized brightness, or the neutral default for an empty frame
    """
    if frame is None or frame.size == 0:
        return DEFAULT_BRIGHTNESS

    if frame.ndim == 3 and frame.shape[2] == 3:
        gray = cv2.cvtColor(frame, cv2.COLOR_BGR2GRAY)
    elif frame.ndim == 3:
        gray = frame[:, :, 0]
    else:
        gray = frame

    return clamp01(float(np.mean(gray)) / 255.0)
