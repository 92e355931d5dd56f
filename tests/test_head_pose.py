"""
Tests for head pose extraction and face size estimation.
"""

import os
import sys
import unittest
from types import SimpleNamespace

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from engagement_monitor.core.head_pose import DEFAULT_FACE_SIZE, estimate_face_size, head_pose_from_transform
from landmark_fixtures import make_landmarks, make_transform


class TestHeadPose(unittest.TestCase):
    """Test Euler angle extraction from the facial transform."""

    def test_identity(self):
        """Identity transform means a frontal face."""
        yaw, pitch, roll = head_pose_from_transform(np.eye(4).flatten().tolist())
        self.assertAlmostEqual(yaw, 0.0)
        self.assertAlmostEqual(pitch, 0.0)
        self.assertAlmostEqual(roll, 0.0)

    def test_yaw_and_pitch(self):
        """Angles round-trip through a column-major matrix."""
        yaw, pitch, roll = head_pose_from_transform(make_transform(yaw=30.0, pitch=-12.0))
        self.assertAlmostEqual(yaw, 30.0, places=4)
        self.assertAlmostEqual(pitch, -12.0, places=4)
        self.assertAlmostEqual(roll, 0.0, places=4)

    def test_nested_matrix_is_row_major(self):
        """A 4x4 nested matrix is read as written."""
        flat = make_transform(yaw=20.0)
        nested = np.asarray(flat).reshape(4, 4, order='F')
        yaw, _, _ = head_pose_from_transform(nested)
        self.assertAlmostEqual(yaw, 20.0, places=4)

    def test_unusable_matrix(self):
        """Missing, short or non-finite matrices give no pose."""
        self.assertIsNone(head_pose_from_transform(None))
        self.assertIsNone(head_pose_from_transform([1.0, 0.0, 0.0]))
        self.assertIsNone(head_pose_from_transform([float('nan')] * 16))


class TestFaceSize(unittest.TestCase):
    """Test normalized face size."""

    def test_face_size(self):
        """Width and height of the outline are averaged."""
        self.assertAlmostEqual(estimate_face_size(make_landmarks(face_extent=0.4)), 0.4)

    def test_face_size_clamped(self):
        """Size stays within [0.1, 1.0]."""
        self.assertAlmostEqual(estimate_face_size(make_landmarks(face_extent=0.02)), 0.1)

    def test_too_few_landmarks(self):
        """Short landmark lists use the default size."""
        self.assertEqual(estimate_face_size(make_landmarks()[:100]), DEFAULT_FACE_SIZE)
        self.assertEqual(estimate_face_size([]), DEFAULT_FACE_SIZE)

    def test_landmark_objects(self):
        """Accessor-style landmarks are supported."""
        points = make_landmarks(face_extent=0.6)
        objects = [SimpleNamespace(x=lambda p=p: p[0], y=lambda p=p: p[1]) for p in points]
        self.assertAlmostEqual(estimate_face_size(objects), 0.6)


if __name__ == '__main__':
    unittest.main()
