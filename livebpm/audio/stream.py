"""Buffers for live audio streaming."""

from __future__ import annotations

import numpy as np

from livebpm.analysis.models import AudioFrame

_DEFAULT_SR = 44100
_MAX_DURATION_SECONDS = 8


class StreamBuffer:
    """Sliding analysis window over a live mono signal.

    ``TempogramEstimator`` appends each downmixed frame and re-reads the
    whole window when it recomputes, so the buffer only ever holds the
    last ``max_duration`` seconds. Reads return copies in stream order.
    """

    def __init__(self, sr: int = _DEFAULT_SR, max_duration: float = _MAX_DURATION_SECONDS) -> None:
        self._sr = sr
        self._capacity = int(sr * max_duration)
        self._ring = np.zeros(self._capacity, dtype=np.float32)
        self._head = 0  # next write index
        self._filled = 0

    @property
    def sr(self) -> int:
        return self._sr

    @property
    def capacity(self) -> int:
        """Window length in samples."""
        return self._capacity

    @property
    def duration(self) -> float:
        """Seconds of audio currently held."""
        return self._filled / self._sr

    def append(self, chunk: np.ndarray) -> None:
        """Add samples, evicting the oldest once the window is full."""
        chunk = np.asarray(chunk, dtype=np.float32).ravel()
        if len(chunk) >= self._capacity:
            # Only the tail of an oversized chunk can survive.
            self._ring[:] = chunk[len(chunk) - self._capacity:]
            self._head = 0
            self._filled = self._capacity
            return

        for piece in self._split_at_wrap(self._head, len(chunk)):
            lo, hi, offset = piece
            self._ring[lo:hi] = chunk[offset:offset + hi - lo]
        self._head = (self._head + len(chunk)) % self._capacity
        self._filled = min(self._filled + len(chunk), self._capacity)

    def get_audio(self, last_n_seconds: float | None = None) -> np.ndarray:
        """Copy out the window (or its most recent *last_n_seconds*), oldest first."""
        n = self._filled
        if last_n_seconds is not None:
            n = min(n, int(self._sr * last_n_seconds))
        if n == 0:
            return np.zeros(0, dtype=np.float32)
        start = (self._head - n) % self._capacity
        return np.concatenate([self._ring[lo:hi] for lo, hi, _ in self._split_at_wrap(start, n)])

    def clear(self) -> None:
        self._ring[:] = 0
        self._head = 0
        self._filled = 0

    def _split_at_wrap(self, start: int, n: int) -> list[tuple[int, int, int]]:
        """Ring slices ``(lo, hi, offset)`` covering *n* samples from *start*."""
        first = min(n, self._capacity - start)
        pieces = [(start, start + first, 0)]
        if n > first:
            pieces.append((0, n - first, first))
        return pieces


class FrameAssembler:
    """Cut an arbitrary-sized stream of interleaved chunks into frames.

    Frames never overlap and always hold ``frame_size`` samples per channel.
    Leftover samples wait in ``pending`` for the next chunk.
    """

    def __init__(self, frame_size: int, sample_rate: int, channels: int = 1) -> None:
        if frame_size <= 0:
            raise ValueError(f"frame_size must be positive, got {frame_size}")
        if channels < 1:
            raise ValueError(f"channels must be >= 1, got {channels}")
        self.frame_size = frame_size
        self.sample_rate = sample_rate
        self.channels = channels
        self._pending = np.zeros(0, dtype=np.float32)

    @property
    def pending(self) -> int:
        """Interleaved samples waiting for a complete frame."""
        return len(self._pending)

    def push(self, chunk: np.ndarray) -> list[AudioFrame]:
        """Add a chunk and return every frame it completes."""
        chunk = np.asarray(chunk, dtype=np.float32).ravel()
        if len(chunk):
            self._pending = np.concatenate([self._pending, chunk])

        step = self.frame_size * self.channels
        n_complete = len(self._pending) // step
        frames = [
            AudioFrame(self._pending[i * step:(i + 1) * step].copy(), self.sample_rate, self.channels)
            for i in range(n_complete)
        ]
        if n_complete:
            self._pending = self._pending[n_complete * step:]
        return frames

    def clear(self) -> None:
        self._pending = np.zeros(0, dtype=np.float32)
