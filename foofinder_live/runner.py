"""
Live camera loop: capture on the main thread, detect on the worker thread, draw the
most recent result over the rotated preview.
"""

from __future__ import annotations

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from foofinder_kit.pipeline import DetectionPipeline
from foofinder_kit.transform import display_size_for_rotation, normalize_rotation
from foofinder_kit.visualize import draw_detection, draw_stats

from .ingest import get_capture_info, iter_frames, open_capture
from .mailbox import Frame
from .worker import DetectionWorker

logger = logging.getLogger(__name__)

_CV2_ROTATIONS = {
    90: cv2.ROTATE_90_CLOCKWISE,
    180: cv2.ROTATE_180,
    270: cv2.ROTATE_90_COUNTERCLOCKWISE,
}


def render_preview(frame_bgr: np.ndarray, rotation_degrees: int, display_size: Tuple[int, int]) -> np.ndarray:
    """Rotate a sensor frame clockwise into display orientation and resize it to `display_size`."""
    rotation = normalize_rotation(rotation_degrees)
    out = frame_bgr if rotation == 0 else cv2.rotate(frame_bgr, _CV2_ROTATIONS[rotation])
    if (out.shape[1], out.shape[0]) != tuple(display_size):
        out = cv2.resize(out, tuple(display_size), interpolation=cv2.INTER_LINEAR)
    return out


def run_live(
    pipeline: DetectionPipeline,
    *,
    video: Optional[str] = None,
    webcam: Optional[int] = None,
    capture_size: Optional[Tuple[int, int]] = None,
    rotation_degrees: int = 0,
    display_size: Optional[Tuple[int, int]] = None,
    show: bool = True,
    out: Optional[str] = None,
    max_frames: int = 0,
) -> int:
    """
    Returns the number of frames captured. Stops on `q`/ESC, end of stream or `max_frames`.
    """

    if max_frames < 0:
        raise ValueError("max_frames must be >= 0")
    rotation = normalize_rotation(rotation_degrees)

    cap_w, cap_h = capture_size if capture_size else (None, None)
    cap = open_capture(video=video, webcam=webcam, width=cap_w, height=cap_h)
    info = get_capture_info(cap)
    logger.info(
        "Capture opened: %s @ %s fps, rotation %d, display %s",
        info.frame_size,
        info.fps,
        rotation,
        display_size or info.display_size(rotation),
    )

    worker = DetectionWorker(pipeline)
    writer = None
    captured = 0

    # Pipeline init errors propagate from here.
    worker.start()
    try:
        for image in iter_frames(cap, max_frames):
            captured += 1

            sensor_h, sensor_w = image.shape[:2]
            view_size = display_size or display_size_for_rotation(sensor_w, sensor_h, rotation)
            worker.submit(Frame(image=image, rotation_degrees=rotation, display_size=view_size, frame_id=captured))

            vis = render_preview(image, rotation, view_size)
            latest = worker.latest
            if latest is not None:
                vis = draw_detection(vis, latest)
                vis = draw_stats(vis, latest)

            if out and writer is None:
                fps = info.fps or 30.0
                fourcc = cv2.VideoWriter_fourcc(*"mp4v")
                writer = cv2.VideoWriter(out, fourcc, fps, (vis.shape[1], vis.shape[0]))
                if not writer.isOpened():
                    raise RuntimeError(f"Failed to open video writer: {out}")
            if writer is not None:
                writer.write(vis)

            if show:
                cv2.imshow("foofinder", vis)
                key = cv2.waitKey(1) & 0xFF
                if key in (27, ord("q")):
                    break
    finally:
        worker.stop()
        cap.release()
        if writer is not None:
            writer.release()
        if show:
            cv2.destroyAllWindows()

    logger.info(
        "Live run finished: captured=%d processed=%d dropped=%d", captured, worker.processed, worker.mailbox.dropped
    )
    return captured
