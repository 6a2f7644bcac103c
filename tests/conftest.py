"""Shared test fixtures for live tempo detection tests."""

import numpy as np
import pytest
from fastapi.testclient import TestClient

from livebpm.analysis.models import AudioFrame
from livebpm.main import app


@pytest.fixture
def client():
    """FastAPI test client."""
    return TestClient(app)


def generate_click_track(
    bpm: float,
    duration_seconds: float = 10.0,
    sr: int = 32768,
    beats_per_bar: int = 4,
    accent_ratio: float = 1.0,
) -> np.ndarray:
    """Generate a synthetic click track, mono, peak-normalized.

    Clicks start at ``round(beat * 60 / bpm * sr)`` so they do not drift.
    At sr=32768 and 120 BPM every click starts on a 1024-sample boundary.
    """
    n_samples = int(duration_seconds * sr)
    audio = np.zeros(n_samples, dtype=np.float32)

    beat_interval = 60.0 / bpm  # seconds per beat
    click_duration = 0.02  # 20ms click
    click_samples = int(click_duration * sr)

    # Short sine burst with a decaying envelope
    t_click = np.arange(click_samples) / sr
    click = np.sin(2 * np.pi * 1000 * t_click) * np.exp(-t_click * 100)

    beat = 0
    while True:
        sample_pos = int(round(beat * beat_interval * sr))
        if sample_pos >= n_samples:
            break
        amplitude = accent_ratio if beat % beats_per_bar == 0 else 1.0
        end = min(sample_pos + click_samples, n_samples)
        audio[sample_pos:end] += click[:end - sample_pos] * amplitude
        beat += 1

    peak = np.max(np.abs(audio))
    if peak > 0:
        audio = audio / peak

    return audio


def split_frames(audio: np.ndarray, sr: int, frame_size: int = 8192, channels: int = 1) -> list[AudioFrame]:
    """Cut audio into consecutive frames (the last one may be short)."""
    step = frame_size * channels
    return [AudioFrame(audio[i:i + step], sr, channels) for i in range(0, len(audio), step)]


@pytest.fixture
def click_120():
    """Click track at 120 BPM, 32768 Hz, aligned to 1024-sample sub-frames."""
    return generate_click_track(bpm=120, duration_seconds=10, sr=32768)


@pytest.fixture
def silence():
    """Ten seconds of digital silence at 32768 Hz."""
    return np.zeros(32768 * 10, dtype=np.float32)
