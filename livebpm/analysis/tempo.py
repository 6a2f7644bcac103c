"""Tempo statistics and multi-estimator consensus."""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

import numpy as np

from livebpm.analysis.models import CONSENSUS_KEY, BeatEstimate

# Energy-variance thresholds for the adaptive onset multiplier.
MIN_VARIANCE = 0.0025
MID_VARIANCE = 0.01
MAX_VARIANCE = 0.02


def adaptive_threshold(variance: float) -> float:
    """Onset multiplier for the current energy variance.

    More dynamic passages need a smaller relative spike to count as a beat.
    """
    if variance < MIN_VARIANCE:
        return 1.55
    if variance < MID_VARIANCE:
        return 1.4
    if variance < MAX_VARIANCE:
        return 1.3 - 10 * variance
    return 1.25


def estimate_from_intervals(
    intervals: Sequence[float],
    window: int = 20,
    trim: float = 0.1,
    min_intervals: int = 5,
) -> tuple[float, float]:
    """Estimate (bpm, confidence) from inter-beat intervals in seconds.

    Uses the last *window* intervals with ``int(n * trim)`` values dropped
    from each tail. Returns ``(0.0, 0.0)`` while there is not enough history.
    """
    if len(intervals) < min_intervals:
        return 0.0, 0.0

    recent = np.sort(np.asarray(intervals[-window:], dtype=np.float64))
    remove = int(len(recent) * trim)
    if remove > 0:
        recent = recent[remove:len(recent) - remove]
    if len(recent) == 0:
        return 0.0, 0.0

    median_interval = float(recent[len(recent) // 2])
    if median_interval <= 0:
        return 0.0, 0.0
    bpm = 60.0 / median_interval

    std = float(np.std(recent, ddof=1)) if len(recent) > 1 else 0.0
    cv = std / median_interval
    confidence = max(0.0, min(1.0, 1.0 - cv))
    return bpm, confidence


def correct_octave(
    bpm: float,
    confidence: float,
    low: float = 60.0,
    high: float = 180.0,
    gate: float = 0.5,
) -> float:
    """Fold a trusted tempo into [low, high] by doubling or halving.

    Estimates with confidence at or below *gate* are returned unchanged.
    """
    if bpm <= 0:
        return bpm
    while bpm < low and confidence > gate:
        bpm *= 2
    while bpm > high and confidence > gate:
        bpm /= 2
    return bpm


@dataclass
class TempoCluster:
    """Estimates believed to share one underlying tempo."""
    center_bpm: float
    total_confidence: float
    members: list[BeatEstimate] = field(default_factory=list)
    adjusted_bpms: list[float] = field(default_factory=list)  # octave-folded to the center

    @classmethod
    def seed(cls, estimate: BeatEstimate) -> TempoCluster:
        return cls(
            center_bpm=estimate.bpm,
            total_confidence=estimate.confidence,
            members=[estimate],
            adjusted_bpms=[estimate.bpm],
        )

    def matches(self, estimate: BeatEstimate, tolerance: float) -> bool:
        ratio = estimate.bpm / self.center_bpm
        return (
            abs(ratio - 1.0) < tolerance
            or abs(ratio - 2.0) < tolerance
            or abs(ratio - 0.5) < tolerance
        )

    def add(self, estimate: BeatEstimate, snap_tolerance: float) -> None:
        ratio = estimate.bpm / self.center_bpm
        adjusted = estimate.bpm
        if abs(ratio - 2.0) < snap_tolerance:
            adjusted = estimate.bpm / 2
        elif abs(ratio - 0.5) < snap_tolerance:
            adjusted = estimate.bpm * 2

        self.members.append(estimate)
        self.adjusted_bpms.append(adjusted)
        n = len(self.members)
        self.center_bpm = (self.center_bpm * (n - 1) + adjusted) / n
        self.total_confidence += estimate.confidence

    @property
    def weighted_bpm(self) -> float:
        """Confidence-weighted mean of the octave-adjusted member tempos."""
        weights = [m.confidence for m in self.members]
        total = sum(weights)
        if total == 0:
            return self.center_bpm
        return sum(b * w for b, w in zip(self.adjusted_bpms, weights)) / total

    @property
    def mean_confidence(self) -> float:
        return self.total_confidence / len(self.members)


def cluster_estimates(
    estimates: Sequence[BeatEstimate],
    tolerance: float = 0.05,
    snap_tolerance: float = 0.10,
) -> list[TempoCluster]:
    """Greedy single-pass clustering of estimates by tempo.

    Each estimate joins the first cluster whose center is the same tempo,
    double or half (within *tolerance*), otherwise it seeds a new cluster.
    The result depends on input order.
    """
    clusters: list[TempoCluster] = []
    for estimate in estimates:
        for cluster in clusters:
            if cluster.matches(estimate, tolerance):
                cluster.add(estimate, snap_tolerance)
                break
        else:
            clusters.append(TempoCluster.seed(estimate))
    return clusters


def consensus_estimate(
    estimates: Sequence[BeatEstimate],
    tolerance: float = 0.05,
    snap_tolerance: float = 0.10,
    single_source_weight: float = 0.5,
) -> BeatEstimate | None:
    """Merge per-algorithm estimates into one consensus estimate.

    Only valid, non-consensus estimates take part. A lone estimate keeps its
    tempo with its confidence scaled by *single_source_weight*. Otherwise the
    cluster with the highest summed confidence wins.
    """
    candidates = [e for e in estimates if e.is_valid and not e.is_consensus]
    if not candidates:
        return None

    if len(candidates) == 1:
        only = candidates[0]
        return BeatEstimate(
            algorithm=CONSENSUS_KEY,
            bpm=only.bpm,
            confidence=only.confidence * single_source_weight,
            alternative_bpms=(only.bpm * 2, only.bpm / 2),
            metadata={
                "cluster_size": 1,
                "cluster_count": 1,
                "algorithms": [only.algorithm],
            },
        )

    clusters = cluster_estimates(candidates, tolerance, snap_tolerance)
    # max() keeps the first cluster on ties
    best = max(clusters, key=lambda c: c.total_confidence)
    bpm = best.weighted_bpm

    return BeatEstimate(
        algorithm=CONSENSUS_KEY,
        bpm=bpm,
        confidence=best.mean_confidence,
        alternative_bpms=(bpm * 2, bpm / 2),
        metadata={
            "cluster_size": len(best.members),
            "cluster_count": len(clusters),
            "algorithms": [m.algorithm for m in best.members],
        },
    )
