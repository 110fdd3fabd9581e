from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Optional, Tuple

import cv2
import numpy as np

from foofinder_kit.transform import display_size_for_rotation


@dataclass(frozen=True)
class CaptureInfo:
    """What the capture device reports. Unknown values are None."""

    fps: Optional[float]
    width: Optional[int]
    height: Optional[int]

    @property
    def frame_size(self) -> Optional[Tuple[int, int]]:
        if self.width is None or self.height is None:
            return None
        return self.width, self.height

    def display_size(self, rotation_degrees: int) -> Optional[Tuple[int, int]]:
        if self.frame_size is None:
            return None
        return display_size_for_rotation(self.width, self.height, rotation_degrees)


def open_capture(
    *,
    video: Optional[str] = None,
    webcam: Optional[int] = None,
    width: Optional[int] = None,
    height: Optional[int] = None,
) -> cv2.VideoCapture:
    """
    Open a video file or webcam. For webcams, `width`/`height` request a capture
    resolution; the camera may pick the closest one it supports.
    """

    if (video is None) == (webcam is None):
        raise ValueError("Exactly one of video/webcam must be provided.")

    if video is not None:
        cap = cv2.VideoCapture(video)
        source = video
    else:
        cap = cv2.VideoCapture(int(webcam))
        source = f"webcam {webcam}"
        if width:
            cap.set(cv2.CAP_PROP_FRAME_WIDTH, int(width))
        if height:
            cap.set(cv2.CAP_PROP_FRAME_HEIGHT, int(height))

    if not cap.isOpened():
        raise RuntimeError(f"Failed to open video source: {source}")
    return cap


def _positive(value: Optional[float]) -> Optional[float]:
    return float(value) if value and value > 0 else None


def get_capture_info(cap: cv2.VideoCapture) -> CaptureInfo:
    w = _positive(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
    h = _positive(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
    return CaptureInfo(
        fps=_positive(cap.get(cv2.CAP_PROP_FPS)),
        width=int(w) if w is not None else None,
        height=int(h) if h is not None else None,
    )


def iter_frames(cap: cv2.VideoCapture, max_frames: int = 0) -> Iterator[np.ndarray]:
    """Yield BGR frames until the stream ends or `max_frames` (0 = no limit) were read."""

    count = 0
    while not max_frames or count < max_frames:
        ok, frame = cap.read()
        if not ok or frame is None:
            return
        count += 1
        yield frame
