"""
Tests for the fixed-capacity history buffer.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from engagement_monitor.core.ring_buffer import RingHistory


class TestRingHistory(unittest.TestCase):
    """Test RingHistory ordering, overwrite and clearing."""

    def test_rejects_non_positive_capacity(self):
        """Capacity below one is a programming error."""
        with self.assertRaises(ValueError):
            RingHistory(0)

    def test_snapshot_before_wrap(self):
        """Snapshot lists items oldest first while not full."""
        history = RingHistory(4)
        for item in (1, 2, 3):
            history.push(item)

        self.assertEqual(history.snapshot(), [1, 2, 3])
        self.assertEqual(len(history), 3)
        self.assertFalse(history.is_full())
        self.assertEqual(history.latest(), 3)

    def test_overwrites_oldest_when_full(self):
        """Pushing capacity + k items keeps exactly the last capacity items in order."""
        history = RingHistory(5)
        for item in range(12):
            history.push(item)

        self.assertEqual(history.snapshot(), [7, 8, 9, 10, 11])
        self.assertTrue(history.is_full())
        self.assertEqual(history.latest(), 11)
        self.assertEqual(list(history), [7, 8, 9, 10, 11])

    def test_empty_latest(self):
        """An empty buffer has no latest item."""
        history = RingHistory(3)
        self.assertIsNone(history.latest())
        self.assertTrue(history.is_empty())
        self.assertEqual(history.snapshot(), [])

    def test_clear_restarts(self):
        """After clear the buffer behaves like a fresh one."""
        history = RingHistory(3)
        for item in "abcde":
            history.push(item)
        history.clear()

        self.assertEqual(history.snapshot(), [])
        self.assertEqual(history.capacity, 3)

        fresh = RingHistory(3)
        for item in "xy":
            history.push(item)
            fresh.push(item)
        self.assertEqual(history.snapshot(), fresh.snapshot())
        self.assertEqual(history.latest(), "y")


if __name__ == '__main__':
    unittest.main()
