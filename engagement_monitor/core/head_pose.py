"""
Head Pose Module

Converts the landmark engine's 4x4 facial transformation matrix into Euler
angles and estimates the normalized on-screen face size used for distance
adaptation.
"""

import numpy as np
from typing import Optional, Sequence, Tuple

from .models import clamp

DEFAULT_FACE_SIZE = 0.5

# Face outline landmarks used for the size estimate
FACE_LEFT_INDEX = 0
FACE_RIGHT_INDEX = 16
FACE_TOP_INDEX = 10
FACE_BOTTOM_INDEX = 152


def _as_rotation(matrix, column_major: bool) -> Optional[np.ndarray]:
    values = np.asarray(matrix, dtype=np.float64)
    if values.size != 16 or not np.all(np.isfinite(values)):
        return None
    values = values.reshape(4, 4)
    if column_major and np.asarray(matrix).ndim == 1:
        values = values.T
    return values[:3, :3]


def head_pose_from_transform(matrix, column_major: bool = True) -> Optional[Tuple[float, float, float]]:
    """
    Extract (yaw, pitch, roll) in degrees from a 4x4 head transform.

    Args:
        matrix: 16 values (flat) or a 4x4 nested sequence/array
        column_major: Whether a flat sequence is stored column-major, as the
            landmark engine emits it. Nested input is always read row-major.

    Returns:
        Tuple of (yaw, pitch, roll) or None when the matrix is unusable
    """
    if matrix is None:
        return None

    rotation = _as_rotation(matrix, column_major)
    if rotation is None:
        return None

    r00, r01, r02 = rotation[0]
    r12 = rotation[1, 2]
    r22 = rotation[2, 2]

    pitch = np.degrees(np.arctan2(-r12, r22))
    yaw = np.degrees(np.arcsin(np.clip(r02, -1.0, 1.0)))
    roll = np.degrees(np.arctan2(-r01, r00))

    return float(yaw), float(pitch), float(roll)


def _xy(point) -> Tuple[float, float]:
    if hasattr(point, 'x'):
        x, y = point.x, point.y
        return (x() if callable(x) else x), (y() if callable(y) else y)
    return point[0], point[1]


def estimate_face_size(landmarks: Sequence) -> float:
    """Normalized face size in [0.1, 1.0] from outline landmarks."""
    if landmarks is None or len(landmarks) <= FACE_BOTTOM_INDEX:
        return DEFAULT_FACE_SIZE

    left_x, _ = _xy(landmarks[FACE_LEFT_INDEX])
    right_x, _ = _xy(landmarks[FACE_RIGHT_INDEX])
    _, top_y = _xy(landmarks[FACE_TOP_INDEX])
    _, bottom_y = _xy(landmarks[FACE_BOTTOM_INDEX])

    face_width = abs(right_x - left_x)
    face_height = abs(bottom_y - top_y)

    return clamp((face_width + face_height) * 0.5, 0.1, 1.0)
