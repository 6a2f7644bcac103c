"""Pydantic response models for API."""

from typing import Any

from pydantic import BaseModel


class BeatEstimateResponse(BaseModel):
    algorithm: str
    bpm: float
    confidence: float
    alternative_bpms: list[float] = []
    metadata: dict[str, Any] = {}
    timestamp: float
    is_valid: bool


class SnapshotResponse(BaseModel):
    estimates: dict[str, BeatEstimateResponse]
    consensus_bpm: float
    consensus_confidence: float = 0.0
    stream_time: float
    round_index: int
    warming_up: bool = False


# WebSocket message types

class SnapshotMessage(BaseModel):
    type: str = "snapshot"
    data: SnapshotResponse


class ErrorMessage(BaseModel):
    type: str = "error"
    algorithm: str | None = None
    message: str
