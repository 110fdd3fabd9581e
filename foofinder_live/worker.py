from __future__ import annotations

import logging
import threading
import time
from collections import deque
from dataclasses import replace
from typing import Callable, Deque, Optional

from foofinder_kit.pipeline import DetectionPipeline
from foofinder_kit.types import Detection

from .mailbox import Frame, LatestFrameMailbox, release_quietly

logger = logging.getLogger(__name__)


class FpsMeter:
    """
    Frames per second over the last `window` completed frames. -1 until two frames were seen.
    """

    def __init__(self, window: int = 30, clock: Callable[[], float] = time.monotonic) -> None:
        if window < 2:
            raise ValueError("window must be >= 2")
        self._clock = clock
        self._stamps: Deque[float] = deque(maxlen=window)

    def tick(self) -> float:
        self._stamps.append(self._clock())
        return self.fps

    @property
    def fps(self) -> float:
        if len(self._stamps) < 2:
            return -1.0
        span = self._stamps[-1] - self._stamps[0]
        if span <= 0:
            return -1.0
        return (len(self._stamps) - 1) / span

    def reset(self) -> None:
        self._stamps.clear()


class DetectionWorker:
    """
    Runs the pipeline on one dedicated thread, one frame at a time.

    Frames are submitted through a single-slot mailbox: while the worker is busy,
    newer frames replace older unprocessed ones. Each processed frame is released
    as soon as the pipeline is done with it, then the result is handed to
    `on_detection` with the measured fps stamped in.
    """

    def __init__(
        self,
        pipeline: DetectionPipeline,
        on_detection: Optional[Callable[[Detection], None]] = None,
        *,
        fps_window: int = 30,
        poll_seconds: float = 0.1,
        restart_timeout: float = 5.0,
    ) -> None:
        self.pipeline = pipeline
        self.on_detection = on_detection
        self.mailbox = LatestFrameMailbox()
        self.fps_meter = FpsMeter(window=fps_window)
        self.poll_seconds = poll_seconds
        self.restart_timeout = restart_timeout
        self.processed = 0

        self._lock = threading.Lock()
        self._latest: Optional[Detection] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None
        # Thread that stop() gave up waiting for; it still owns the pipeline until it exits.
        self._abandoned: Optional[threading.Thread] = None

    @property
    def latest(self) -> Optional[Detection]:
        with self._lock:
            return self._latest

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """
        Open the pipeline (errors propagate) and start the worker thread.

        If an earlier thread was abandoned mid-frame, wait up to `restart_timeout`
        for it to finish; RuntimeError if it is still running after that.
        """

        if self.running:
            return
        abandoned = self._abandoned
        if abandoned is not None:
            abandoned.join(timeout=self.restart_timeout)
            if abandoned.is_alive():
                raise RuntimeError("Previous detection thread is still processing a frame")
            self._abandoned = None

        self.pipeline.open()
        # Each thread gets its own stop event and mailbox.
        self._stop = threading.Event()
        if self.mailbox.closed:
            self.mailbox = LatestFrameMailbox()
        self._thread = threading.Thread(
            target=self._loop,
            args=(self.mailbox, self._stop),
            name="foofinder-detection-worker",
            daemon=True,
        )
        self._thread.start()
        logger.info("Detection worker started")

    def submit(self, frame: Frame) -> bool:
        return self.mailbox.put(frame)

    def stop(self, timeout: float = 2.0) -> None:
        """
        Stop taking frames. The worker thread closes the pipeline on its way out; a
        frame still in flight is given `timeout` seconds to finish, after that the
        thread is abandoned and closes the pipeline whenever the frame completes.
        """

        self._stop.set()
        self.mailbox.close()
        thread, self._thread = self._thread, None
        if thread is None:
            if self._abandoned is None:
                self.pipeline.close()
            return

        thread.join(timeout=timeout)
        if thread.is_alive():
            logger.warning("Detection worker did not stop within %.1fs; abandoning in-flight frame", timeout)
            self._abandoned = thread
        logger.info("Detection worker stopped (processed=%d, dropped=%d)", self.processed, self.mailbox.dropped)

    def __enter__(self) -> "DetectionWorker":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def _loop(self, mailbox: LatestFrameMailbox, stop: threading.Event) -> None:
        try:
            while not stop.is_set():
                frame = mailbox.take(timeout=self.poll_seconds)
                if frame is None:
                    continue
                try:
                    detection = self.pipeline.analyze(frame.image, frame.rotation_degrees, frame.display_size)
                finally:
                    release_quietly(frame)
                if stop.is_set():
                    break
                self._publish(detection)
        finally:
            self.pipeline.close()

    def _publish(self, detection: Detection) -> None:
        fps = self.fps_meter.tick()
        # Failed frames keep their -1 sentinels.
        if not detection.is_empty:
            detection = replace(detection, fps=fps)
        with self._lock:
            self._latest = detection
            self.processed += 1

        if self.on_detection is not None:
            try:
                self.on_detection(detection)
            except Exception:
                logger.exception("Detection callback failed")
