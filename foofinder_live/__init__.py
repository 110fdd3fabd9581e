"""
Live-camera layer built on top of `foofinder_kit`.

Detection itself stays in `foofinder_kit/`; this package handles what sits around
it in a camera app:
- detector profile (JSON config)
- keep-only-latest frame hand-off + serial detection worker
- capture ingestion and the live preview loop
"""

from .config import DetectorProfile, load_detector_profile
from .ingest import CaptureInfo, get_capture_info, iter_frames, open_capture
from .logging_utils import setup_logging
from .mailbox import Frame, LatestFrameMailbox
from .runner import render_preview, run_live
from .worker import DetectionWorker, FpsMeter

__all__ = [
    "DetectorProfile",
    "load_detector_profile",
    "setup_logging",
    "Frame",
    "LatestFrameMailbox",
    "DetectionWorker",
    "FpsMeter",
    "CaptureInfo",
    "get_capture_info",
    "iter_frames",
    "open_capture",
    "render_preview",
    "run_live",
]
