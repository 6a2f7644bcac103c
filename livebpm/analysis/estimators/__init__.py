"""Tempo estimator subpackage, one strategy per module."""

from __future__ import annotations

from collections.abc import Callable, Sequence

from livebpm.analysis.estimators.base import Estimator
from livebpm.analysis.estimators.energy_variance import EnergyVarianceEstimator
from livebpm.analysis.estimators.tempogram import TempogramEstimator
from livebpm.config import Settings


def _tempogram(config: Settings) -> TempogramEstimator:
    return TempogramEstimator(
        sample_rate=config.sample_rate,
        window_seconds=config.tempogram_window_seconds,
        min_seconds=config.tempogram_min_seconds,
        interval_seconds=config.tempogram_interval_seconds,
    )


ESTIMATORS: dict[str, Callable[[Settings], Estimator]] = {
    "energy_variance": lambda config: EnergyVarianceEstimator(),
    "tempogram": _tempogram,
}


def build_estimators(names: Sequence[str], config: Settings) -> list[Estimator]:
    """Instantiate estimators by registry name, in the given order."""
    unknown = [n for n in names if n not in ESTIMATORS]
    if unknown:
        raise ValueError(f"Unknown estimators: {', '.join(unknown)}. Use: {', '.join(ESTIMATORS)}")
    return [ESTIMATORS[n](config) for n in names]


__all__ = [
    "Estimator",
    "EnergyVarianceEstimator",
    "TempogramEstimator",
    "ESTIMATORS",
    "build_estimators",
]
