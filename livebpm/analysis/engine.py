"""Detection orchestrator - fans frames out to every estimator and merges the results."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor

from livebpm.analysis.estimators import Estimator, build_estimators
from livebpm.analysis.models import (
    CONSENSUS_KEY,
    AudioFrame,
    BeatEstimate,
    DetectionSnapshot,
    EstimatorFailure,
)
from livebpm.analysis.tempo import consensus_estimate
from livebpm.config import Settings

SnapshotListener = Callable[[DetectionSnapshot], None]
ErrorListener = Callable[[EstimatorFailure], None]


class DetectionEngine:
    """Runs registered estimators on each audio frame and publishes a consensus.

    A round is: dispatch the frame to every estimator in parallel, wait for
    all of them, merge valid estimates into the retained map, recompute the
    consensus and notify subscribers. Rounds are serialized, so an estimator
    never sees two frames at once and subscribers see rounds in stream order.

    Frames arrive either synchronously through :meth:`process_frame` (the
    caller blocks for the round) or through :meth:`submit`, which hands them
    to a worker thread via a bounded queue. When that queue is full the
    oldest waiting frame is dropped and counted in :attr:`dropped_frames`.

    A failing estimator keeps its last valid estimate in the retained map;
    the failure is reported on the error channel instead.
    """

    def __init__(
        self,
        estimators: Iterable[Estimator] | None = None,
        config: Settings | None = None,
        logger: logging.Logger | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.config = config or Settings()
        self.logger = logger or logging.getLogger(__name__)

        self._estimators: list[Estimator] = []
        self._estimates: dict[str, BeatEstimate] = {}
        self._listeners: list[SnapshotListener] = []
        self._error_listeners: list[ErrorListener] = []
        self._listener_lock = threading.Lock()

        # Held for a whole round and while start() resets estimator state.
        self._round_lock = threading.RLock()
        self._state_lock = threading.Lock()
        self._running = False
        self._session = 0
        self._round_index = 0
        self._stream_time = 0.0
        self._samples_seen = 0
        self._dropped = 0

        self._queue: queue.Queue = queue.Queue(maxsize=max(1, self.config.queue_depth))
        self._worker: threading.Thread | None = None
        self._stop_event = threading.Event()

        if estimators is None:
            estimators = build_estimators(self.config.estimators, self.config)
        for estimator in estimators:
            self.register(estimator)

        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or self.config.max_workers,
            thread_name_prefix="livebpm-estimator",
        )

    # ------------------------------------------------------------------
    # Registry and state
    # ------------------------------------------------------------------

    def register(self, estimator: Estimator) -> None:
        """Add an estimator. Names must be unique."""
        with self._round_lock:
            if any(e.name == estimator.name for e in self._estimators):
                raise ValueError(f"Estimator {estimator.name!r} is already registered")
            if estimator.name == CONSENSUS_KEY:
                raise ValueError(f"{CONSENSUS_KEY!r} is reserved for the merged estimate")
            if self._running:
                estimator.reset()
            self._estimators.append(estimator)
        if estimator.requires_full_audio:
            self.logger.warning(
                f"{estimator.name} requires full audio; streaming estimates may stay empty"
            )
        self.logger.debug(f"Registered estimator {estimator.name} "
                          f"(minimum {estimator.minimum_samples} samples)")

    @property
    def estimators(self) -> tuple[Estimator, ...]:
        return tuple(self._estimators)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def current_estimates(self) -> dict[str, BeatEstimate]:
        """Retained estimates by algorithm name, including the consensus."""
        return dict(self._estimates)

    @property
    def dropped_frames(self) -> int:
        return self._dropped

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Reset every estimator and start accepting frames."""
        previous = self._worker
        if not self._running and previous is not None and previous is not threading.current_thread():
            # Let the previous session's worker exit so it cannot take new frames.
            previous.join()

        with self._round_lock, self._state_lock:
            if self._running:
                return
            for estimator in self._estimators:
                estimator.reset()
            self._estimates.clear()
            self._round_index = 0
            self._stream_time = 0.0
            self._samples_seen = 0
            self._session += 1
            self._drain_queue()

            self._stop_event = threading.Event()
            self._worker = threading.Thread(
                target=self._run_worker,
                args=(self._stop_event,),
                name="livebpm-engine",
                daemon=True,
            )
            self._running = True
            self._worker.start()
        self.logger.info(f"Detection started with {len(self._estimators)} estimators: "
                         f"{', '.join(e.name for e in self._estimators)}")

    def stop(self) -> None:
        """Stop accepting frames.

        A round already in flight finishes but is not published. Safe to call
        from any thread, including from a subscriber callback.
        """
        with self._state_lock:
            if not self._running:
                return
            self._running = False
            self._stop_event.set()
            self._drain_queue()
        self.logger.info(f"Detection stopped after {self._round_index} rounds "
                         f"({self._dropped} frames dropped)")

    def close(self) -> None:
        """Stop and release the worker thread and estimator pool.

        Not to be called from a subscriber callback; use :meth:`stop` there.
        """
        self.stop()
        worker = self._worker
        if worker is not None and worker is not threading.current_thread():
            worker.join()
        self._pool.shutdown(wait=True)

    def __enter__(self) -> DetectionEngine:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(self, callback: SnapshotListener) -> Callable[[], None]:
        """Call *callback* with each round's snapshot. Returns an unsubscribe function."""
        return self._add_listener(self._listeners, callback)

    def on_error(self, callback: ErrorListener) -> Callable[[], None]:
        """Call *callback* for each estimator failure. Returns an unsubscribe function."""
        return self._add_listener(self._error_listeners, callback)

    def _add_listener(self, listeners: list, callback: Callable) -> Callable[[], None]:
        with self._listener_lock:
            listeners.append(callback)

        def unsubscribe() -> None:
            with self._listener_lock:
                if callback in listeners:
                    listeners.remove(callback)

        return unsubscribe

    # ------------------------------------------------------------------
    # Frame input
    # ------------------------------------------------------------------

    def process_frame(self, frame: AudioFrame) -> DetectionSnapshot | None:
        """Run one round on the calling thread.

        Returns the published snapshot, or None if the engine is not running.
        """
        return self._process(frame, self._session)

    def submit(self, frame: AudioFrame) -> bool:
        """Queue a frame for the worker thread without blocking.

        Returns False if the engine is not running.
        """
        if not self._running:
            return False
        item = (self._session, frame)
        while True:
            try:
                self._queue.put_nowait(item)
                return True
            except queue.Full:
                pass
            try:
                self._queue.get_nowait()
            except queue.Empty:
                continue
            with self._state_lock:
                self._dropped += 1
            self.logger.debug(f"Frame queue full, dropped oldest frame ({self._dropped} total)")

    def _run_worker(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                session, frame = self._queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self._process(frame, session)
            except Exception:
                self.logger.exception("Detection round failed")

    def _drain_queue(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except queue.Empty:
                return

    # ------------------------------------------------------------------
    # Rounds
    # ------------------------------------------------------------------

    def _process(self, frame: AudioFrame, session: int) -> DetectionSnapshot | None:
        with self._round_lock:
            if not self._running or session != self._session:
                return None

            futures = [
                self._pool.submit(self._run_estimator, estimator, frame)
                for estimator in self._estimators
            ]
            results = [f.result() for f in futures]

            if not self._running:
                # Stopped mid-round: estimator state is reset on the next start().
                return None

            failures = tuple(failure for _, failure in results if failure is not None)
            for estimate, _ in results:
                if estimate.is_valid and not estimate.is_consensus:
                    self._estimates[estimate.algorithm] = estimate

            consensus = consensus_estimate(
                [e for name, e in self._estimates.items() if name != CONSENSUS_KEY],
                tolerance=self.config.cluster_tolerance,
                snap_tolerance=self.config.octave_snap_tolerance,
                single_source_weight=self.config.single_source_weight,
            )
            if consensus is not None:
                self._estimates[CONSENSUS_KEY] = consensus
            else:
                self._estimates.pop(CONSENSUS_KEY, None)

            self._round_index += 1
            self._stream_time += frame.duration
            self._samples_seen += frame.n_frames
            warmup = max((e.minimum_samples for e in self._estimators), default=0)

            snapshot = DetectionSnapshot(
                estimates=dict(self._estimates),
                consensus_bpm=consensus.bpm if consensus is not None else 0.0,
                consensus=consensus,
                failures=failures,
                stream_time=self._stream_time,
                round_index=self._round_index,
                warming_up=self._samples_seen < warmup,
            )
            if consensus is not None:
                self.logger.debug(f"Round {self._round_index}: {consensus.bpm:.1f} BPM "
                                  f"(confidence {consensus.confidence:.2f})")

            self._publish(snapshot)
            return snapshot

    def _run_estimator(
        self,
        estimator: Estimator,
        frame: AudioFrame,
    ) -> tuple[BeatEstimate, EstimatorFailure | None]:
        try:
            return estimator.estimate(frame), None
        except Exception as e:
            self.logger.warning(f"Estimator {estimator.name} failed: {e}", exc_info=True)
            failure = EstimatorFailure(algorithm=estimator.name, message=str(e))
            return BeatEstimate.invalid(estimator.name, error=str(e)), failure

    def _publish(self, snapshot: DetectionSnapshot) -> None:
        with self._listener_lock:
            listeners = list(self._listeners)
            error_listeners = list(self._error_listeners)

        for listener in listeners:
            try:
                listener(snapshot)
            except Exception:
                self.logger.exception("Snapshot listener failed")

        for failure in snapshot.failures:
            for listener in error_listeners:
                try:
                    listener(failure)
                except Exception:
                    self.logger.exception("Error listener failed")
