"""
Fixed-capacity history buffer shared by every temporal component.
"""

from typing import Generic, List, Optional, TypeVar

T = TypeVar('T')


class RingHistory(Generic[T]):
    """Append-only ring buffer; the oldest entry is overwritten once full."""

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError(f"RingHistory capacity must be positive, got {capacity}")
        self._capacity = capacity
        self._buffer: List[Optional[T]] = [None] * capacity
        self._head = 0
        self._size = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def push(self, item: T) -> None:
        self._buffer[self._head] = item
        self._head = (self._head + 1) % self._capacity
        if self._size < self._capacity:
            self._size += 1

    def snapshot(self) -> List[T]:
        """Items ordered oldest to newest."""
        start = self._head - self._size
        return [self._buffer[(start + i) % self._capacity] for i in range(self._size)]

    def latest(self) -> Optional[T]:
        if self._size == 0:
            return None
        return self._buffer[(self._head - 1) % self._capacity]

    def clear(self) -> None:
        self._head = 0
        self._size = 0
        for i in range(self._capacity):
            self._buffer[i] = None

    def is_full(self) -> bool:
        return self._size == self._capacity

    def is_empty(self) -> bool:
        return self._size == 0

    def __len__(self) -> int:
        return self._size

    def __iter__(self):
        return iter(self.snapshot())

    def __repr__(self) -> str:
        return f"RingHistory(capacity={self._capacity}, items={self.snapshot()!r})"
