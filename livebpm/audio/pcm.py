"""Raw PCM byte decoding."""

from __future__ import annotations

import numpy as np

ENCODINGS = ("float32", "int16", "int24", "int32")


def decode_pcm(data: bytes, encoding: str = "float32") -> np.ndarray:
    """Decode little-endian PCM bytes into float32 samples in [-1.0, 1.0].

    Trailing bytes that do not form a whole sample are ignored.
    """
    if encoding == "float32":
        n = len(data) // 4
        return np.frombuffer(data[:n * 4], dtype="<f4").astype(np.float32)
    if encoding == "int16":
        n = len(data) // 2
        return np.frombuffer(data[:n * 2], dtype="<i2").astype(np.float32) / 32768.0
    if encoding == "int24":
        n = len(data) // 3
        raw = np.frombuffer(data[:n * 3], dtype=np.uint8).reshape(-1, 3).astype(np.int32)
        values = raw[:, 0] | (raw[:, 1] << 8) | (raw[:, 2] << 16)
        # sign-extend bit 23
        values = np.where(values & 0x800000, values - 0x1000000, values)
        return values.astype(np.float32) / 8388608.0
    if encoding == "int32":
        n = len(data) // 4
        return (np.frombuffer(data[:n * 4], dtype="<i4").astype(np.float64) / 2147483648.0).astype(np.float32)
    raise ValueError(f"Unsupported encoding {encoding!r}. Use: {', '.join(ENCODINGS)}")


SAMPLE_WIDTHS = {"float32": 4, "int16": 2, "int24": 3, "int32": 4}


class PcmDecoder:
    """Decode a byte stream split into arbitrary chunks.

    Bytes that do not complete a sample group (one sample per channel) are
    held back and prepended to the next chunk, so chunk boundaries may fall
    anywhere.
    """

    def __init__(self, encoding: str = "float32", channels: int = 1) -> None:
        if encoding not in SAMPLE_WIDTHS:
            raise ValueError(f"Unsupported encoding {encoding!r}. Use: {', '.join(ENCODINGS)}")
        if channels < 1:
            raise ValueError(f"channels must be >= 1, got {channels}")
        self.encoding = encoding
        self.channels = channels
        self._group_bytes = SAMPLE_WIDTHS[encoding] * channels
        self._remainder = b""

    @property
    def pending_bytes(self) -> int:
        return len(self._remainder)

    def decode(self, data: bytes) -> np.ndarray:
        """Return the samples completed by *data*, interleaved."""
        data = self._remainder + bytes(data)
        usable = len(data) - len(data) % self._group_bytes
        self._remainder = data[usable:]
        return decode_pcm(data[:usable], self.encoding)

    def clear(self) -> None:
        self._remainder = b""
