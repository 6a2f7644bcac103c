"""Core data models for live tempo detection."""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, field
from typing import Any

import numpy as np

CONSENSUS_KEY = "Consensus"

# Tempo ratios treated as the same underlying pulse.
_OCTAVE_RATIOS = (0.5, 1.0, 2.0, 0.33, 3.0, 0.66, 1.5)


@dataclass(frozen=True, eq=False)
class AudioFrame:
    """A batch of interleaved samples in [-1.0, 1.0]."""
    samples: np.ndarray
    sample_rate: int
    channels: int = 1

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float32).ravel()
        if self.channels < 1:
            raise ValueError(f"channels must be >= 1, got {self.channels}")
        if self.sample_rate <= 0:
            raise ValueError(f"sample_rate must be positive, got {self.sample_rate}")
        if len(samples) % self.channels != 0:
            raise ValueError(
                f"{len(samples)} samples is not a multiple of {self.channels} channels"
            )
        object.__setattr__(self, "samples", samples)

    @classmethod
    def empty(cls, capacity: int, sample_rate: int, channels: int = 1) -> AudioFrame:
        """Zero-filled frame whose samples the caller populates in place."""
        return cls(np.zeros(capacity, dtype=np.float32), sample_rate, channels)

    def __len__(self) -> int:
        return len(self.samples)

    @property
    def n_frames(self) -> int:
        """Samples per channel."""
        return len(self.samples) // self.channels

    @property
    def duration(self) -> float:
        return self.n_frames / self.sample_rate

    def mono(self) -> np.ndarray:
        """Average the channels at each time index.

        Mono frames return their own sample array, not a copy.
        """
        if self.channels == 1:
            return self.samples
        return self.samples.reshape(-1, self.channels).mean(axis=1)

    def energy(self) -> float:
        """Sum of squared samples."""
        x = self.samples.astype(np.float64)
        return float(np.dot(x, x))

    def rms(self) -> float:
        if len(self.samples) == 0:
            return 0.0
        return math.sqrt(self.energy() / len(self.samples))


@dataclass(frozen=True)
class BeatEstimate:
    """A tempo estimate from a single algorithm (or the consensus)."""
    algorithm: str
    bpm: float
    confidence: float  # 0.0-1.0
    alternative_bpms: tuple[float, ...] = ()
    metadata: dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def invalid(cls, algorithm: str, **metadata: Any) -> BeatEstimate:
        """Zero-confidence placeholder for a round without a usable tempo."""
        return cls(algorithm=algorithm, bpm=0.0, confidence=0.0, metadata=metadata)

    @property
    def is_valid(self) -> bool:
        return 0 < self.bpm < 300 and self.confidence > 0

    @property
    def is_consensus(self) -> bool:
        return self.algorithm == CONSENSUS_KEY

    def is_octave_related(self, other: BeatEstimate | None, tolerance: float = 0.03) -> bool:
        """True if the two tempos differ by a simple rhythmic ratio (2:1, 3:2, ...)."""
        if other is None or other.bpm <= 0:
            return False
        ratio = self.bpm / other.bpm
        return any(abs(ratio - r) < tolerance for r in _OCTAVE_RATIOS)


@dataclass(frozen=True)
class EstimatorFailure:
    """An estimator raised while processing a frame."""
    algorithm: str
    message: str


@dataclass(frozen=True)
class DetectionSnapshot:
    """Result of one detection round, as published to subscribers."""
    estimates: dict[str, BeatEstimate]
    consensus_bpm: float
    consensus: BeatEstimate | None = None
    failures: tuple[EstimatorFailure, ...] = ()
    stream_time: float = 0.0  # seconds of audio processed this session
    round_index: int = 0
    warming_up: bool = False  # fewer samples per channel seen than some estimator needs
