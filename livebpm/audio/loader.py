"""Audio file loading utilities."""

from __future__ import annotations

from collections.abc import Iterator
from io import BytesIO
from pathlib import Path
from typing import Union

import librosa
import numpy as np

from livebpm.analysis.models import AudioFrame


def load_audio(
    file_path_or_buffer: Union[str, Path, BytesIO],
    sr: int | None = None,
    mono: bool = False,
) -> tuple[np.ndarray, int, int]:
    """Load an audio file or buffer as interleaved samples.

    Parameters
    ----------
    file_path_or_buffer:
        Path to an audio file or a BytesIO buffer containing audio data.
    sr:
        Target sample rate. ``None`` keeps the native rate.
    mono:
        Downmix to a single channel.

    Returns
    -------
    tuple[np.ndarray, int, int]
        A tuple of (interleaved_samples, sample_rate, channels).
    """
    audio, sample_rate = librosa.load(file_path_or_buffer, sr=sr, mono=mono)
    if audio.ndim == 1:
        return audio.astype(np.float32), int(sample_rate), 1
    # librosa returns (channels, samples)
    channels = audio.shape[0]
    return audio.T.ravel().astype(np.float32), int(sample_rate), channels


def iter_frames(
    samples: np.ndarray,
    sample_rate: int,
    channels: int = 1,
    frame_size: int = 8192,
) -> Iterator[AudioFrame]:
    """Yield consecutive frames of *frame_size* samples per channel.

    The last frame may be shorter.
    """
    step = frame_size * channels
    usable = len(samples) - len(samples) % channels
    for start in range(0, usable, step):
        yield AudioFrame(samples[start:min(start + step, usable)], sample_rate, channels)
