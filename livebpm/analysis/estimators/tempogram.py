"""Tempo from an autocorrelation tempogram over a sliding audio window."""

from __future__ import annotations

import logging

import numpy as np

from livebpm.analysis.models import AudioFrame, BeatEstimate
from livebpm.audio.stream import StreamBuffer

logger = logging.getLogger(__name__)


def tempo_from_tempogram(
    audio: np.ndarray,
    sr: int,
    min_bpm: float = 40,
    max_bpm: float = 300,
    hop_length: int = 512,
) -> tuple[float, float]:
    """Estimate (bpm, confidence) from tempogram peaks.

    Confidence is the prominence of the peak over the median strength in
    the valid tempo range. Returns ``(0.0, 0.0)`` for silent audio.
    """
    import librosa

    onset_env = librosa.onset.onset_strength(y=audio, sr=sr, hop_length=hop_length)
    if not np.any(onset_env > 0):
        return 0.0, 0.0

    tempogram = librosa.feature.tempogram(onset_envelope=onset_env, sr=sr, hop_length=hop_length)

    # Average tempogram across time
    avg_tempogram = np.mean(tempogram, axis=1)
    bpm_axis = librosa.tempo_frequencies(tempogram.shape[0], sr=sr, hop_length=hop_length)

    valid_mask = (bpm_axis >= min_bpm) & (bpm_axis <= max_bpm)
    if not np.any(valid_mask):
        return 0.0, 0.0

    valid_tempos = bpm_axis[valid_mask]
    valid_strengths = avg_tempogram[valid_mask]

    peak_idx = int(np.argmax(valid_strengths))
    peak = float(valid_strengths[peak_idx])
    if peak <= 0:
        return 0.0, 0.0

    confidence = 1.0 - float(np.median(valid_strengths)) / peak
    return float(valid_tempos[peak_idx]), max(0.0, min(1.0, confidence))


class TempogramEstimator:
    """Re-analyses the last few seconds of audio at a fixed stream-time cadence."""

    name = "Tempogram"
    description = "Onset autocorrelation tempogram over a sliding window"
    requires_full_audio = False

    def __init__(
        self,
        sample_rate: int = 44100,
        window_seconds: float = 8.0,
        min_seconds: float = 4.0,
        interval_seconds: float = 1.0,
        min_bpm: float = 40,
        max_bpm: float = 300,
    ) -> None:
        if min_seconds > window_seconds:
            raise ValueError("min_seconds cannot exceed window_seconds")
        self.window_seconds = window_seconds
        self.min_seconds = min_seconds
        self.interval_seconds = interval_seconds
        self.min_bpm = min_bpm
        self.max_bpm = max_bpm
        self.minimum_samples = int(min_seconds * sample_rate)

        self._buffer: StreamBuffer | None = None
        self._since_analysis = 0.0
        self._last: tuple[float, float] | None = None

    def estimate(self, frame: AudioFrame) -> BeatEstimate:
        mono = frame.mono()
        if self._buffer is None or self._buffer.sr != frame.sample_rate:
            if self._buffer is not None:
                logger.info(f"Sample rate changed to {frame.sample_rate} Hz, dropping buffered audio")
            self._buffer = StreamBuffer(sr=frame.sample_rate, max_duration=self.window_seconds)
            self._last = None
            self._since_analysis = 0.0

        self._buffer.append(mono)
        self._since_analysis += len(mono) / frame.sample_rate
        buffered = self._buffer.duration

        if buffered < self.min_seconds:
            return BeatEstimate.invalid(self.name, buffered_seconds=buffered)

        if self._last is None or self._since_analysis >= self.interval_seconds:
            self._last = tempo_from_tempogram(
                self._buffer.get_audio(), frame.sample_rate, self.min_bpm, self.max_bpm,
            )
            self._since_analysis = 0.0

        bpm, confidence = self._last
        if bpm == 0:
            return BeatEstimate.invalid(self.name, buffered_seconds=buffered)
        return BeatEstimate(
            algorithm=self.name,
            bpm=bpm,
            confidence=confidence,
            alternative_bpms=(bpm * 2, bpm / 2),
            metadata={"buffered_seconds": buffered},
        )

    def reset(self) -> None:
        self._buffer = None
        self._since_analysis = 0.0
        self._last = None
