"""Tests for audio frames and beat estimates."""

import math

import numpy as np
import pytest

from livebpm.analysis.models import AudioFrame, BeatEstimate


def test_mono_frame_returns_samples_unchanged():
    frame = AudioFrame(np.array([0.1, -0.2, 0.3], dtype=np.float32), 44100, 1)
    assert frame.mono() is frame.samples


def test_stereo_downmix_averages_channels():
    frame = AudioFrame(np.array([1.0, 0.0, 0.5, 0.5, -1.0, 1.0], dtype=np.float32), 44100, 2)
    np.testing.assert_allclose(frame.mono(), [0.5, 0.5, 0.0])
    assert frame.n_frames == 3


def test_samples_must_fill_whole_channel_groups():
    with pytest.raises(ValueError):
        AudioFrame(np.zeros(5, dtype=np.float32), 44100, 2)


@pytest.mark.parametrize("sample_rate, channels", [(0, 1), (-44100, 1), (44100, 0)])
def test_rejects_bad_format(sample_rate, channels):
    with pytest.raises(ValueError):
        AudioFrame(np.zeros(4, dtype=np.float32), sample_rate, channels)


def test_energy_and_rms():
    frame = AudioFrame(np.array([0.5, -0.5, 0.5, -0.5], dtype=np.float32), 1000)
    assert frame.energy() == pytest.approx(1.0)
    assert frame.rms() == pytest.approx(0.5)


def test_rms_of_empty_frame_is_zero():
    frame = AudioFrame(np.zeros(0, dtype=np.float32), 1000)
    assert frame.rms() == 0.0
    assert frame.energy() == 0.0


def test_empty_frame_is_populated_in_place():
    frame = AudioFrame.empty(4, 8000, channels=2)
    frame.samples[:] = [1.0, 3.0, 1.0, 3.0]
    np.testing.assert_allclose(frame.mono(), [2.0, 2.0])
    assert frame.duration == pytest.approx(2 / 8000)


@pytest.mark.parametrize("bpm, confidence, valid", [
    (120.0, 0.5, True),
    (0.0, 0.5, False),
    (300.0, 0.9, False),
    (299.9, 0.01, True),
    (120.0, 0.0, False),
    (-10.0, 0.5, False),
])
def test_validity(bpm, confidence, valid):
    assert BeatEstimate("x", bpm, confidence).is_valid is valid


def test_invalid_placeholder():
    estimate = BeatEstimate.invalid("Energy Variance", error="boom")
    assert not estimate.is_valid
    assert estimate.bpm == 0.0
    assert estimate.confidence == 0.0
    assert estimate.metadata == {"error": "boom"}


@pytest.mark.parametrize("a, b, related", [
    (120.0, 120.0, True),
    (120.0, 60.0, True),
    (60.0, 120.0, True),
    (120.0, 80.0, True),   # 3:2
    (120.0, 40.0, True),   # 3:1
    (120.0, 100.0, False),
    (120.0, 0.0, False),
])
def test_octave_related(a, b, related):
    assert BeatEstimate("a", a, 0.9).is_octave_related(BeatEstimate("b", b, 0.9)) is related


def test_octave_related_to_nothing():
    assert not BeatEstimate("a", 120.0, 0.9).is_octave_related(None)


def test_estimates_are_immutable():
    estimate = BeatEstimate("a", 120.0, 0.9)
    with pytest.raises(Exception):
        estimate.bpm = 60.0
    assert math.isfinite(estimate.timestamp)
