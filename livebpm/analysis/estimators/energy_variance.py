"""Streaming beat detection from short-time energy spikes.

Each 1024-sample sub-frame's energy is compared with the mean energy of the
last 43 sub-frames (~1 s at 44.1 kHz). A sub-frame louder than
``C * mean`` is an onset, where ``C`` shrinks as the energy variance grows.
Onsets closer than 0.25 s to the previous beat are ignored. Tempo comes from
a trimmed median of recent inter-beat intervals.
"""

from __future__ import annotations

from collections import deque

import numpy as np

from livebpm.analysis.buffer import WindowedStats
from livebpm.analysis.models import AudioFrame, BeatEstimate
from livebpm.analysis.tempo import adaptive_threshold, correct_octave, estimate_from_intervals

SUB_FRAME_SIZE = 1024
HISTORY_SIZE = 43
MIN_BEAT_GAP = 0.25  # seconds
INTERVAL_WINDOW = 20
TRIM_FRACTION = 0.1
MIN_INTERVALS = 5


class EnergyVarianceEstimator:
    """Energy-variance onset detector with inter-beat-interval tempo."""

    name = "Energy Variance"
    description = "Energy variance beat detection"
    requires_full_audio = False
    minimum_samples = SUB_FRAME_SIZE * HISTORY_SIZE

    def __init__(self) -> None:
        self._energy_history = WindowedStats(HISTORY_SIZE)
        # Only the most recent interval window is ever read back.
        self._beat_times: deque[float] = deque(maxlen=INTERVAL_WINDOW + 1)
        self._intervals: deque[float] = deque(maxlen=INTERVAL_WINDOW)
        self._beat_count = 0
        self._interval_count = 0
        self._last_beat_time: float | None = None
        self._elapsed = 0.0
        self._sample_count = 0

    @property
    def beat_times(self) -> list[float]:
        """The most recent beat onsets, in seconds of stream time."""
        return list(self._beat_times)

    @property
    def sample_count(self) -> int:
        return self._sample_count

    @property
    def elapsed(self) -> float:
        """Seconds of audio consumed since construction or the last reset."""
        return self._elapsed

    def estimate(self, frame: AudioFrame) -> BeatEstimate:
        mono = frame.mono()
        self._detect_beats(mono, frame.sample_rate)

        self._elapsed += len(mono) / frame.sample_rate
        self._sample_count += len(mono)

        return self._current_estimate()

    def reset(self) -> None:
        self._energy_history.clear()
        self._beat_times.clear()
        self._intervals.clear()
        self._beat_count = 0
        self._interval_count = 0
        self._last_beat_time = None
        self._elapsed = 0.0
        self._sample_count = 0

    def _detect_beats(self, mono: np.ndarray, sr: int) -> None:
        samples = mono.astype(np.float64)
        for start in range(0, len(samples), SUB_FRAME_SIZE):
            chunk = samples[start:start + SUB_FRAME_SIZE]
            instant_energy = float(np.dot(chunk, chunk))
            self._energy_history.push(instant_energy)

            if len(self._energy_history) < HISTORY_SIZE:
                continue

            mean_energy = self._energy_history.mean()
            c = adaptive_threshold(self._energy_history.variance())
            if instant_energy <= c * mean_energy:
                continue

            onset_time = self._elapsed + start / sr
            if self._last_beat_time is not None:
                if onset_time - self._last_beat_time <= MIN_BEAT_GAP:
                    continue
                self._intervals.append(onset_time - self._last_beat_time)
                self._interval_count += 1
            self._beat_times.append(onset_time)
            self._beat_count += 1
            self._last_beat_time = onset_time

    def _current_estimate(self) -> BeatEstimate:
        metadata = {
            "beat_count": self._beat_count,
            "interval_count": self._interval_count,
            "variance": self._energy_history.variance(),
        }

        bpm, confidence = estimate_from_intervals(
            list(self._intervals),
            window=INTERVAL_WINDOW,
            trim=TRIM_FRACTION,
            min_intervals=MIN_INTERVALS,
        )
        if bpm == 0:
            return BeatEstimate.invalid(self.name, **metadata)

        bpm = correct_octave(bpm, confidence)
        return BeatEstimate(
            algorithm=self.name,
            bpm=bpm,
            confidence=confidence,
            alternative_bpms=(bpm * 2, bpm / 2),
            metadata=metadata,
        )
