"""
Scratch buffer pool for per-frame work.

Text buffers and float arrays are checked out with a context manager and
always returned to the pool on exit, including when the body raises.
"""

import io
import threading
from collections import deque
from contextlib import contextmanager
from typing import Deque, Iterator

import numpy as np

from ..core.models import MemoryPoolStats

MAX_POOL_SIZE = 10


class ScratchPool:
    """Bounded pool of reusable text buffers and float arrays."""

    def __init__(self, max_pool_size: int = MAX_POOL_SIZE):
        self.max_pool_size = max_pool_size
        self._lock = threading.Lock()
        self._string_buffers: Deque[io.StringIO] = deque()
        self._float_arrays: Deque[np.ndarray] = deque()

    def acquire_string_buffer(self) -> io.StringIO:
        with self._lock:
            buffer = self._string_buffers.popleft() if self._string_buffers else None
        if buffer is None:
            return io.StringIO()
        buffer.seek(0)
        buffer.truncate(0)
        return buffer

    def release_string_buffer(self, buffer: io.StringIO) -> None:
        with self._lock:
            if len(self._string_buffers) < self.max_pool_size:
                buffer.seek(0)
                buffer.truncate(0)
                self._string_buffers.append(buffer)

    def acquire_float_array(self, size: int) -> np.ndarray:
        """Zeroed float array with at least ``size`` slots."""
        with self._lock:
            array = self._float_arrays.popleft() if self._float_arrays else None
        if array is None or array.size < size:
            return np.zeros(size, dtype=np.float64)
        return array

    def release_float_array(self, array: np.ndarray) -> None:
        with self._lock:
            if len(self._float_arrays) < self.max_pool_size:
                array.fill(0.0)
                self._float_arrays.append(array)

    @contextmanager
    def string_buffer(self) -> Iterator[io.StringIO]:
        buffer = self.acquire_string_buffer()
        try:
            yield buffer
        finally:
            self.release_string_buffer(buffer)

    @contextmanager
    def float_array(self, size: int) -> Iterator[np.ndarray]:
        array = self.acquire_float_array(size)
        try:
            yield array
        finally:
            self.release_float_array(array)

    def cleanup(self) -> None:
        """Drop every pooled buffer."""
        with self._lock:
            self._string_buffers.clear()
            self._float_arrays.clear()

    def stats(self) -> MemoryPoolStats:
        with self._lock:
            return MemoryPoolStats(
                string_buffer_pool_size=len(self._string_buffers),
                float_array_pool_size=len(self._float_arrays),
                max_pool_size=self.max_pool_size,
            )
