from __future__ import annotations

from dataclasses import replace
from typing import Dict, Iterable, List, Optional, Tuple

import numpy as np

from .transform import scale_area, scale_box
from .types import BoundingBox, CoordinateSpace, Detection

# OpenCV expects BGR.
DETECTION_AREA_STYLE = ((0, 0, 255), 4)
GROUND_TRUTH_STYLE = ((255, 255, 255), 3)
CLASS_STYLES: Dict[int, Tuple[Tuple[int, int, int], int]] = {
    0: ((255, 0, 0), 3),  # foo: blue
    1: ((255, 0, 255), 2),  # not_foo: magenta
}
OTHER_CLASS_STYLE = ((255, 255, 0), 1)  # cyan


def _require_cv2():
    try:
        import cv2  # type: ignore
    except Exception as e:  # pragma: no cover
        raise ImportError("OpenCV is required for drawing. Install with `pip install opencv-python`.") from e
    return cv2


def _check_image(image_bgr: np.ndarray) -> None:
    if image_bgr is None or not hasattr(image_bgr, "shape"):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {getattr(image_bgr, 'shape', None)}")


def style_for_class(class_id: int) -> Tuple[Tuple[int, int, int], int]:
    return CLASS_STYLES.get(class_id, OTHER_CLASS_STYLE)


def scale_detection_to_canvas(
    detection: Detection,
    source_size: Tuple[int, int],
    canvas_size: Tuple[int, int],
) -> Detection:
    """
    Scale a detection from `source_size` (w, h) pixels to `canvas_size` (w, h) pixels.
    Canvas pixels are display pixels, so the result is tagged DISPLAY.
    """

    src_w, src_h = source_size
    dst_w, dst_h = canvas_size
    if src_w <= 0 or src_h <= 0:
        raise ValueError(f"source_size must be positive (got {source_size})")
    sx, sy = dst_w / src_w, dst_h / src_h
    return replace(
        detection,
        bounding_boxes=tuple(scale_box(b, sx, sy, CoordinateSpace.DISPLAY) for b in detection.bounding_boxes),
        area=scale_area(detection.area, sx, sy, CoordinateSpace.DISPLAY),
        space=CoordinateSpace.DISPLAY,
    )


def _draw_rect(cv2, out: np.ndarray, xyxy, color, thickness: int) -> Tuple[int, int]:
    h, w = out.shape[:2]
    x1, y1, x2, y2 = xyxy
    x1i = int(np.clip(round(x1), 0, w - 1))
    y1i = int(np.clip(round(y1), 0, h - 1))
    x2i = int(np.clip(round(x2), 0, w - 1))
    y2i = int(np.clip(round(y2), 0, h - 1))
    cv2.rectangle(out, (x1i, y1i), (x2i, y2i), color, thickness=thickness)
    return x1i, y1i


def draw_detection(
    image_bgr: np.ndarray,
    detection: Detection,
    *,
    source_size: Optional[Tuple[int, int]] = None,
    show_label: bool = True,
    font_scale: float = 0.5,
    font_thickness: int = 1,
) -> np.ndarray:
    """
    Draw the detection area and boxes on a copy of `image_bgr`.

    Args:
        image_bgr: canvas in BGR (H, W, 3).
        detection: boxes in `source_size` pixels; None means they already match the canvas.
    """

    cv2 = _require_cv2()
    _check_image(image_bgr)

    out = image_bgr.copy()
    h, w = out.shape[:2]
    if source_size is not None:
        detection = scale_detection_to_canvas(detection, source_size, (w, h))

    if not detection.area.is_empty:
        color, thickness = DETECTION_AREA_STYLE
        a = detection.area
        _draw_rect(cv2, out, (a.start_x, a.start_y, a.start_x + a.width, a.start_y + a.height), color, thickness)

    for box in detection.bounding_boxes:
        color, thickness = style_for_class(box.class_id)
        x1i, y1i = _draw_rect(cv2, out, box.as_xyxy(), color, thickness)
        if not show_label:
            continue

        label = f"{box.class_name} {box.confidence:.2f}"
        (_, th), baseline = cv2.getTextSize(label, cv2.FONT_HERSHEY_SIMPLEX, font_scale, font_thickness)
        # Place label above the box if possible, else inside.
        y_text_top = y1i - th - baseline
        if y_text_top < 0:
            y_text_top = y1i
        cv2.putText(
            out,
            label,
            (x1i, min(y_text_top + th, h - 1)),
            cv2.FONT_HERSHEY_SIMPLEX,
            font_scale,
            color,
            thickness=font_thickness,
            lineType=cv2.LINE_AA,
        )

    return out


def draw_ground_truth(
    image_bgr: np.ndarray,
    boxes: Iterable[BoundingBox],
    *,
    source_size: Optional[Tuple[int, int]] = None,
) -> np.ndarray:
    """Draw ground-truth boxes (white) on a copy of `image_bgr`."""

    cv2 = _require_cv2()
    _check_image(image_bgr)

    out = image_bgr.copy()
    h, w = out.shape[:2]
    sx, sy = 1.0, 1.0
    if source_size is not None:
        sx, sy = w / source_size[0], h / source_size[1]

    color, thickness = GROUND_TRUTH_STYLE
    for box in boxes:
        scaled = scale_box(box, sx, sy, box.space)
        _draw_rect(cv2, out, scaled.as_xyxy(), color, thickness)
    return out


def format_stats(detection: Detection) -> List[str]:
    filtered_out = max(0, detection.raw_detections - detection.after_nms_detections)
    fps_text = f"{detection.fps:.1f}" if detection.fps >= 0 else "-"
    inf_text = f"{detection.inference_ms} ms" if detection.inference_ms >= 0 else "-"
    return [
        f"FPS: {fps_text}",
        f"Inference: {inf_text}",
        f"Objects: {detection.after_nms_detections} (kept)",
        f"NMS filtered/raw: {filtered_out}/{detection.raw_detections}",
    ]


def draw_stats(image_bgr: np.ndarray, detection: Detection, *, origin: Tuple[int, int] = (8, 20)) -> np.ndarray:
    """Write `format_stats` lines on a copy of `image_bgr`."""

    cv2 = _require_cv2()
    _check_image(image_bgr)

    out = image_bgr.copy()
    x, y = origin
    for line in format_stats(detection):
        cv2.putText(out, line, (x, y), cv2.FONT_HERSHEY_SIMPLEX, 0.5, (255, 255, 255), 1, cv2.LINE_AA)
        y += 18
    return out
