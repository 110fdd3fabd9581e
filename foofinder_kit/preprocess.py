from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .types import DetectionArea


@dataclass(frozen=True)
class PreprocessConfig:
    """
    Model input layout.

    - input_size: (width, height) the crop is resized to
    - channels_first: NCHW blob when True (ONNX exports), NHWC otherwise (TFLite exports)
    """

    input_size: Tuple[int, int] = (640, 640)
    channels_first: bool = True

    def __post_init__(self) -> None:
        w, h = self.input_size
        if w < 1 or h < 1:
            raise ValueError(f"input_size must be positive (got {self.input_size})")


def crop_detection_area(image: np.ndarray, area: DetectionArea) -> np.ndarray:
    """
    Return the pixels of `image` covered by `area` (a view, not a copy).
    """

    if area.is_empty:
        raise ValueError("Cannot crop an empty detection area")
    h, w = image.shape[:2]
    x0, y0 = int(area.start_x), int(area.start_y)
    x1, y1 = x0 + int(area.width), y0 + int(area.height)
    if x0 < 0 or y0 < 0 or x1 > w or y1 > h:
        raise ValueError(f"Detection area {area} does not fit a {w}x{h} frame")
    return image[y0:y1, x0:x1]


def to_input_blob(image_bgr: np.ndarray, area: DetectionArea, cfg: PreprocessConfig = PreprocessConfig()) -> np.ndarray:
    """
    Crop the detection area, resize to the model input and normalize to [0, 1].

    Returns a float32 blob with a leading batch axis, in NCHW or NHWC order.
    """
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for to_input_blob(). Install with `pip install opencv-python`.") from e

    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")

    crop = crop_detection_area(image_bgr, area)
    new_w, new_h = cfg.input_size
    if crop.shape[1] != new_w or crop.shape[0] != new_h:
        crop = cv2.resize(crop, (new_w, new_h), interpolation=cv2.INTER_LINEAR)

    # BGR -> RGB, normalize, add batch
    blob = crop[:, :, ::-1].astype(np.float32) / 255.0
    if cfg.channels_first:
        blob = np.transpose(blob, (2, 0, 1))
    return np.ascontiguousarray(blob[None, ...])
