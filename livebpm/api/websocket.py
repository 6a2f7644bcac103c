"""WebSocket endpoint for live tempo detection."""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from livebpm.analysis.engine import DetectionEngine
from livebpm.analysis.models import BeatEstimate, DetectionSnapshot
from livebpm.api.schemas import (
    BeatEstimateResponse,
    ErrorMessage,
    SnapshotMessage,
    SnapshotResponse,
)
from livebpm.audio.pcm import ENCODINGS, PcmDecoder
from livebpm.audio.stream import FrameAssembler
from livebpm.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


def _estimate_to_response(estimate: BeatEstimate) -> BeatEstimateResponse:
    return BeatEstimateResponse(
        algorithm=estimate.algorithm,
        bpm=estimate.bpm,
        confidence=estimate.confidence,
        alternative_bpms=list(estimate.alternative_bpms),
        metadata=estimate.metadata,
        timestamp=estimate.timestamp,
        is_valid=estimate.is_valid,
    )


def snapshot_to_response(snapshot: DetectionSnapshot) -> dict:
    """Convert a DetectionSnapshot to a dict for JSON serialization."""
    return SnapshotMessage(
        data=SnapshotResponse(
            estimates={
                name: _estimate_to_response(e) for name, e in snapshot.estimates.items()
            },
            consensus_bpm=snapshot.consensus_bpm,
            consensus_confidence=snapshot.consensus.confidence if snapshot.consensus else 0.0,
            stream_time=snapshot.stream_time,
            round_index=snapshot.round_index,
            warming_up=snapshot.warming_up,
        ),
    ).model_dump()


def _parse_stream_params(websocket: WebSocket) -> tuple[int, int, str]:
    params = websocket.query_params
    sample_rate = int(params.get("sample_rate", settings.sample_rate))
    channels = int(params.get("channels", settings.channels))
    encoding = params.get("encoding", "float32")
    if sample_rate <= 0:
        raise ValueError(f"sample_rate must be positive, got {sample_rate}")
    if channels < 1:
        raise ValueError(f"channels must be >= 1, got {channels}")
    if encoding not in ENCODINGS:
        raise ValueError(f"Unsupported encoding {encoding!r}. Use: {', '.join(ENCODINGS)}")
    return sample_rate, channels, encoding


@router.websocket("/ws/live")
async def live_detection(websocket: WebSocket):
    """Live tempo detection via WebSocket.

    Protocol:
    - Query params: ``sample_rate`` (default from settings), ``channels``
      (default 1), ``encoding`` (float32 | int16 | int24 | int32)
    - Client sends binary interleaved PCM chunks of any size; a sample split
      across two messages is reassembled
    - Server sends JSON messages, one snapshot per complete frame:
      - {"type": "snapshot", "data": {...}}
      - {"type": "error", "algorithm": A, "message": M}
    """
    await websocket.accept()

    try:
        sample_rate, channels, encoding = _parse_stream_params(websocket)
    except ValueError as e:
        await websocket.send_json(ErrorMessage(message=str(e)).model_dump())
        await websocket.close(code=1003)
        return

    decoder = PcmDecoder(encoding, channels)
    assembler = FrameAssembler(settings.frame_size, sample_rate, channels)
    engine = DetectionEngine(config=settings, logger=logger)
    engine.start()
    loop = asyncio.get_running_loop()

    try:
        while True:
            data = await websocket.receive_bytes()
            chunk = decoder.decode(data)

            for frame in assembler.push(chunk):
                # Awaiting each round keeps rounds serialized; the client
                # is throttled by the socket instead of frames being dropped.
                snapshot = await loop.run_in_executor(None, engine.process_frame, frame)
                if snapshot is None:
                    continue
                await websocket.send_json(snapshot_to_response(snapshot))
                for failure in snapshot.failures:
                    await websocket.send_json(ErrorMessage(
                        algorithm=failure.algorithm,
                        message=failure.message,
                    ).model_dump())

    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.exception("Live detection failed")
        try:
            await websocket.send_json(ErrorMessage(message=str(e)).model_dump())
        except Exception:
            pass
    finally:
        await loop.run_in_executor(None, engine.close)
