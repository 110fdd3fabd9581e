from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

import numpy as np

logger = logging.getLogger(__name__)


@dataclass
class Frame:
    """
    One captured camera frame plus what the detector needs to know about it.

    `release` frees the capture resource behind `image` (e.g. returns a buffer to
    the camera); it runs at most once.
    """

    image: np.ndarray
    rotation_degrees: int = 0
    display_size: Optional[Tuple[int, int]] = None
    timestamp: float = field(default_factory=time.monotonic)
    frame_id: Optional[int] = None
    on_release: Optional[Callable[[], None]] = None
    _released: bool = field(default=False, init=False, repr=False)

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        if self.on_release is not None:
            self.on_release()


def release_quietly(frame: Frame) -> None:
    try:
        frame.release()
    except Exception:
        logger.exception("Failed to release frame %s", frame.frame_id)


class LatestFrameMailbox:
    """
    Single-slot hand-off between the capture thread and the detection worker.

    A new frame overwrites a frame the worker has not taken yet; the overwritten
    frame is released right away and never processed. There is no queue.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._slot: Optional[Frame] = None
        self._closed = False
        self.dropped = 0

    def put(self, frame: Frame) -> bool:
        """
        Offer a frame. Returns False (and releases the frame) when the mailbox is closed.
        """

        with self._cond:
            if self._closed:
                superseded, accepted = frame, False
            else:
                superseded, accepted = self._slot, True
                self._slot = frame
                if superseded is not None:
                    self.dropped += 1
                self._cond.notify()

        if superseded is not None:
            release_quietly(superseded)
        return accepted

    def take(self, timeout: Optional[float] = None) -> Optional[Frame]:
        """
        Wait for the next frame. Returns None on timeout or once the mailbox is closed.
        """

        with self._cond:
            if not self._cond.wait_for(lambda: self._slot is not None or self._closed, timeout=timeout):
                return None
            if self._closed:
                return None
            frame, self._slot = self._slot, None
            return frame

    def close(self) -> None:
        with self._cond:
            self._closed = True
            pending, self._slot = self._slot, None
            self._cond.notify_all()
        if pending is not None:
            release_quietly(pending)

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    @property
    def pending(self) -> bool:
        with self._cond:
            return self._slot is not None

