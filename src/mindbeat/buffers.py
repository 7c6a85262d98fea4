"""Fixed-capacity FIFO sample buffers."""

from __future__ import annotations

from collections import deque

import numpy as np


class ChannelBuffer:
    """Ring of the most recent ``capacity`` samples of one channel.

    Pushing beyond capacity evicts the oldest sample.  :meth:`snapshot`
    returns a copy, so whoever receives it can never mutate the buffer.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._data: deque[float] = deque(maxlen=capacity)

    def push(self, value: float) -> None:
        self._data.append(float(value))

    def extend(self, values) -> None:
        for v in values:
            self.push(v)

    @property
    def full(self) -> bool:
        return len(self._data) == self.capacity

    def snapshot(self) -> np.ndarray:
        """Copy of the buffer contents, oldest first."""
        return np.fromiter(self._data, dtype=np.float64, count=len(self._data))

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"ChannelBuffer({len(self._data)}/{self.capacity})"
