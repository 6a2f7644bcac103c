#!/usr/bin/env python3
"""Replay an audio file through the live detection engine.

Frames are fed one at a time, exactly as a capture device would deliver
them, and the consensus tempo is printed as it evolves.

Usage:
    uv run python scripts/replay.py song.wav
    uv run python scripts/replay.py song.wav --estimators energy_variance
    uv run python scripts/replay.py song.wav --realtime --verbose
"""

import argparse
import logging
import sys
import threading
import time
from pathlib import Path

from tqdm import tqdm

PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from livebpm.analysis.engine import DetectionEngine
from livebpm.audio.loader import iter_frames, load_audio
from livebpm.config import Settings
from livebpm.main import configure_logging


def format_snapshot(snapshot) -> str:
    parts = [f"{snapshot.stream_time:6.1f}s  consensus {snapshot.consensus_bpm:6.1f} BPM"]
    if snapshot.consensus is not None:
        parts.append(f"(conf {snapshot.consensus.confidence:.2f})")
    for name, e in snapshot.estimates.items():
        if not e.is_consensus:
            parts.append(f"| {name}: {e.bpm:.1f} @ {e.confidence:.2f}")
    return " ".join(parts)


def replay_blocking(engine: DetectionEngine, frames, every: int) -> None:
    """Process every frame synchronously (no drops)."""
    last = None
    for frame in tqdm(frames, desc="Frames", unit="frame"):
        snapshot = engine.process_frame(frame)
        if snapshot is None:
            continue
        last = snapshot
        if snapshot.round_index % every == 0:
            tqdm.write(format_snapshot(snapshot))
    if last is not None:
        print(format_snapshot(last))


def replay_realtime(engine: DetectionEngine, frames, every: int) -> None:
    """Submit frames at the audio rate; slow rounds cause frame drops."""
    done = threading.Event()
    last = []

    def on_snapshot(snapshot):
        last[:] = [snapshot]
        if snapshot.round_index % every == 0:
            print(format_snapshot(snapshot))
        done.set()

    engine.subscribe(on_snapshot)
    for frame in frames:
        engine.submit(frame)
        time.sleep(frame.duration)
    done.wait(timeout=5.0)
    if last:
        print(format_snapshot(last[0]))
    print(f"Dropped frames: {engine.dropped_frames}")


def main():
    parser = argparse.ArgumentParser(description="Replay a file through the live BPM engine")
    parser.add_argument("path", type=Path)
    parser.add_argument("--sr", type=int, default=None,
                        help="Resample to this rate (default: native)")
    parser.add_argument("--estimators", nargs="+", default=None,
                        help="Estimator names (default: from settings)")
    parser.add_argument("--every", type=int, default=10,
                        help="Print every Nth round")
    parser.add_argument("--realtime", action="store_true",
                        help="Pace frames at the audio rate through the frame queue")
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    configure_logging("DEBUG" if args.verbose else "INFO")
    logger = logging.getLogger("livebpm.replay")

    config = Settings()
    if args.estimators:
        config = config.model_copy(update={"estimators": args.estimators})

    samples, sr, channels = load_audio(args.path, sr=args.sr)
    logger.info(f"Loaded {args.path.name}: {len(samples) / channels / sr:.1f}s, "
                f"{sr}Hz, {channels} channel(s)")
    frames = list(iter_frames(samples, sr, channels, config.frame_size))

    with DetectionEngine(config=config) as engine:
        errors = []
        engine.on_error(errors.append)
        engine.start()
        if args.realtime:
            replay_realtime(engine, frames, max(1, args.every))
        else:
            replay_blocking(engine, frames, max(1, args.every))
        if errors:
            print(f"{len(errors)} estimator failures, first: {errors[0].algorithm}: {errors[0].message}")


if __name__ == "__main__":
    main()
