"""Fixed-capacity ring buffer with windowed statistics."""

from __future__ import annotations

from collections.abc import Iterable

import numpy as np


class WindowedStats:
    """Ring buffer of the most recent ``capacity`` scalar values.

    Index ``0`` is the oldest value and ``len(buf) - 1`` the newest. Once
    the buffer is full every push overwrites the oldest slot.

    Statistics are recomputed over the current contents on each call; the
    window is bounded, so the cost does not grow with the stream length.
    Not thread-safe: a buffer is expected to have a single writer.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._values = np.zeros(capacity, dtype=np.float64)
        self._write_pos = 0
        self._count = 0

    @property
    def capacity(self) -> int:
        return len(self._values)

    @property
    def is_full(self) -> bool:
        return self._count == len(self._values)

    def __len__(self) -> int:
        return self._count

    def __getitem__(self, index: int) -> float:
        if not 0 <= index < self._count:
            raise IndexError(f"index {index} out of range for {self._count} values")
        if self._count < len(self._values):
            return float(self._values[index])
        return float(self._values[(self._write_pos + index) % len(self._values)])

    def push(self, value: float) -> None:
        self._values[self._write_pos] = value
        self._write_pos = (self._write_pos + 1) % len(self._values)
        if self._count < len(self._values):
            self._count += 1

    def extend(self, values: Iterable[float]) -> None:
        for value in values:
            self.push(value)

    def to_array(self) -> np.ndarray:
        """Return the buffered values oldest-first as a new array."""
        if self._count < len(self._values):
            return self._values[:self._count].copy()
        return np.concatenate([
            self._values[self._write_pos:],
            self._values[:self._write_pos],
        ])

    def mean(self) -> float:
        if self._count == 0:
            return 0.0
        return float(np.mean(self._window()))

    def variance(self) -> float:
        """Sample variance (divisor ``count - 1``); 0 for one value or fewer."""
        if self._count <= 1:
            return 0.0
        window = self._window()
        # A constant window is exactly 0, not rounding noise around the mean.
        if np.all(window == window[0]):
            return 0.0
        return float(np.var(window, ddof=1))

    def clear(self) -> None:
        self._values[:] = 0
        self._write_pos = 0
        self._count = 0

    def _window(self) -> np.ndarray:
        # Order is irrelevant for mean/variance, so skip the rotation.
        return self._values[:self._count]
