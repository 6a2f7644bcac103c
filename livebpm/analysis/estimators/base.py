"""The capability every tempo estimator implements."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from livebpm.analysis.models import AudioFrame, BeatEstimate


@runtime_checkable
class Estimator(Protocol):
    """A streaming tempo estimation strategy.

    Implementations keep private state across frames. The engine never calls
    ``estimate`` concurrently on the same instance, and calls ``reset`` only
    between rounds.
    """

    name: str
    description: str
    minimum_samples: int
    requires_full_audio: bool

    def estimate(self, frame: AudioFrame) -> BeatEstimate:
        """Consume one frame and return the current estimate."""
        ...

    def reset(self) -> None:
        """Return to the just-constructed state."""
        ...
