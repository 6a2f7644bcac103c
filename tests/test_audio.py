"""Tests for audio input helpers: PCM decoding, stream buffers and file loading."""

import numpy as np
import pytest
import soundfile as sf

from livebpm.audio.loader import iter_frames, load_audio
from livebpm.audio.pcm import PcmDecoder, decode_pcm
from livebpm.audio.stream import FrameAssembler, StreamBuffer


def test_decode_float32():
    values = np.array([0.0, 0.5, -1.0], dtype="<f4")
    np.testing.assert_array_equal(decode_pcm(values.tobytes(), "float32"), values)


def test_decode_int16():
    data = np.array([0, 16384, -32768], dtype="<i2").tobytes()
    np.testing.assert_allclose(decode_pcm(data, "int16"), [0.0, 0.5, -1.0])


def test_decode_int24_sign_extends():
    # 0x400000 = +0.5, 0xC00000 = -0.5, 0x800000 = -1.0
    data = bytes([0x00, 0x00, 0x40, 0x00, 0x00, 0xC0, 0x00, 0x00, 0x80])
    np.testing.assert_allclose(decode_pcm(data, "int24"), [0.5, -0.5, -1.0])


def test_decode_int32():
    data = np.array([1073741824, -2147483648], dtype="<i4").tobytes()
    np.testing.assert_allclose(decode_pcm(data, "int32"), [0.5, -1.0])


def test_decode_ignores_partial_trailing_sample():
    data = np.array([0.25], dtype="<f4").tobytes() + b"\x01\x02"
    np.testing.assert_array_equal(decode_pcm(data), [0.25])


def test_decode_rejects_unknown_encoding():
    with pytest.raises(ValueError):
        decode_pcm(b"\x00\x00", "uint8")


def test_decoder_reassembles_samples_split_across_chunks():
    expected = np.linspace(-1.0, 0.99, 4000).astype(np.float32)
    data = (expected * 32768).astype("<i2").tobytes()

    decoder = PcmDecoder("int16", channels=2)
    parts = [decoder.decode(data[i:i + 1001]) for i in range(0, len(data), 1001)]
    decoded = np.concatenate(parts)

    assert len(decoded) == 4000
    np.testing.assert_allclose(decoded, decode_pcm(data, "int16"))
    assert all(len(p) % 2 == 0 for p in parts)
    assert decoder.pending_bytes == 0


def test_decoder_holds_back_partial_sample_groups():
    decoder = PcmDecoder("int24", channels=2)
    data = bytes([0x00, 0x00, 0x40, 0x00, 0x00, 0xC0])
    assert len(decoder.decode(data[:5])) == 0
    assert decoder.pending_bytes == 5
    np.testing.assert_allclose(decoder.decode(data[5:]), [0.5, -0.5])
    assert decoder.pending_bytes == 0

    decoder.decode(data[:4])
    decoder.clear()
    assert decoder.pending_bytes == 0


def test_decoder_rejects_bad_arguments():
    with pytest.raises(ValueError):
        PcmDecoder("mp3")
    with pytest.raises(ValueError):
        PcmDecoder("int16", channels=0)


def test_stream_buffer_keeps_most_recent_audio():
    buf = StreamBuffer(sr=10, max_duration=1)
    buf.append(np.arange(7))
    buf.append(np.arange(7, 15))
    assert buf.duration == pytest.approx(1.0)
    np.testing.assert_array_equal(buf.get_audio(), np.arange(5, 15))
    np.testing.assert_array_equal(buf.get_audio(last_n_seconds=0.3), [12, 13, 14])


def test_stream_buffer_oversized_chunk():
    buf = StreamBuffer(sr=10, max_duration=1)
    buf.append(np.arange(25))
    np.testing.assert_array_equal(buf.get_audio(), np.arange(15, 25))
    buf.clear()
    assert buf.duration == 0.0
    assert len(buf.get_audio()) == 0


def test_frame_assembler_cuts_exact_frames():
    assembler = FrameAssembler(frame_size=4, sample_rate=8000, channels=2)
    assert assembler.push(np.arange(5)) == []
    assert assembler.pending == 5

    frames = assembler.push(np.arange(5, 20))
    assert len(frames) == 2
    np.testing.assert_array_equal(frames[0].samples, np.arange(8))
    np.testing.assert_array_equal(frames[1].samples, np.arange(8, 16))
    assert all(f.channels == 2 and f.sample_rate == 8000 for f in frames)
    assert assembler.pending == 4

    assembler.clear()
    assert assembler.pending == 0


def test_frame_assembler_rejects_bad_sizes():
    with pytest.raises(ValueError):
        FrameAssembler(frame_size=0, sample_rate=8000)
    with pytest.raises(ValueError):
        FrameAssembler(frame_size=4, sample_rate=8000, channels=0)


def test_load_audio_interleaves_channels(tmp_path):
    sr = 8000
    left = np.linspace(-0.5, 0.5, sr, dtype=np.float32)
    right = -left
    path = tmp_path / "stereo.wav"
    sf.write(str(path), np.stack([left, right], axis=1), sr, subtype="FLOAT")

    samples, loaded_sr, channels = load_audio(path)
    assert loaded_sr == sr
    assert channels == 2
    np.testing.assert_allclose(samples[0::2], left, atol=1e-6)
    np.testing.assert_allclose(samples[1::2], right, atol=1e-6)

    frames = list(iter_frames(samples, loaded_sr, channels, frame_size=3000))
    assert [f.n_frames for f in frames] == [3000, 3000, 2000]


def test_load_audio_mono_downmix(tmp_path):
    sr = 8000
    stereo = np.zeros((sr, 2), dtype=np.float32)
    stereo[:, 0] = 0.5
    path = tmp_path / "stereo.wav"
    sf.write(str(path), stereo, sr, subtype="FLOAT")

    samples, _, channels = load_audio(path, mono=True)
    assert channels == 1
    np.testing.assert_allclose(samples, 0.25, atol=1e-6)


def test_stream_buffer_accumulates_across_the_wrap_point():
    buf = StreamBuffer(sr=4, max_duration=2)
    assert buf.capacity == 8
    for start in range(0, 12, 3):
        buf.append(np.arange(start, start + 3))
    np.testing.assert_array_equal(buf.get_audio(), np.arange(4, 12))
    buf.append(np.zeros(0))
    assert buf.duration == pytest.approx(2.0)
