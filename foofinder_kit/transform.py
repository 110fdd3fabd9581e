"""
Sensor -> display coordinate mapping.

Boxes come out of the decoder in the sensor-oriented image frame. The preview the
user sees is rotated by the camera's `rotation_degrees` and scaled to the view,
so every box (and the detection area) is rotated first and scaled second:

    rotated = rotate(box, sensor_w, sensor_h, rotation)
    display = scale(rotated, display_w / base_w, display_h / base_h)

where (base_w, base_h) is the sensor size with axes swapped for 90/270. Scaling
before rotating would apply the X scale to what ends up being the Y axis.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Tuple

from .types import BoundingBox, CoordinateSpace, Detection, DetectionArea

logger = logging.getLogger(__name__)

SUPPORTED_ROTATIONS = (0, 90, 180, 270)

Rect = Tuple[float, float, float, float]


def normalize_rotation(rotation_degrees: int) -> int:
    deg = ((int(rotation_degrees) % 360) + 360) % 360
    if deg not in SUPPORTED_ROTATIONS:
        raise ValueError(f"rotation must be a multiple of 90 degrees (got {rotation_degrees})")
    return deg


def display_size_for_rotation(sensor_width: int, sensor_height: int, rotation_degrees: int) -> Tuple[int, int]:
    """Frame size as seen on screen: axes swap for 90/270."""
    if normalize_rotation(rotation_degrees) in (90, 270):
        return sensor_height, sensor_width
    return sensor_width, sensor_height


def _rotate_rect(rect: Rect, base_width: float, base_height: float, rotation: int) -> Rect:
    x, y, w, h = rect
    if rotation == 90:
        return base_width - (y + h), x, h, w
    if rotation == 180:
        return base_width - (x + w), base_height - (y + h), w, h
    if rotation == 270:
        return y, base_height - (x + w), h, w
    return x, y, w, h


def _base_size(sensor_width: float, sensor_height: float, rotation: int) -> Tuple[float, float]:
    if rotation in (90, 270):
        return float(sensor_height), float(sensor_width)
    return float(sensor_width), float(sensor_height)


def rotate_box(box: BoundingBox, sensor_width: float, sensor_height: float, rotation_degrees: int) -> BoundingBox:
    rotation = normalize_rotation(rotation_degrees)
    base_w, base_h = _base_size(sensor_width, sensor_height, rotation)
    x, y, w, h = _rotate_rect((box.start_x, box.start_y, box.width, box.height), base_w, base_h, rotation)
    return replace(box, start_x=x, start_y=y, width=w, height=h)


def rotate_area(area: DetectionArea, sensor_width: float, sensor_height: float, rotation_degrees: int) -> DetectionArea:
    if area.is_empty:
        return area
    rotation = normalize_rotation(rotation_degrees)
    base_w, base_h = _base_size(sensor_width, sensor_height, rotation)
    x, y, w, h = _rotate_rect((area.start_x, area.start_y, area.width, area.height), base_w, base_h, rotation)
    return replace(area, start_x=x, start_y=y, width=w, height=h)


def scale_box(box: BoundingBox, scale_x: float, scale_y: float, space: CoordinateSpace) -> BoundingBox:
    return replace(
        box,
        start_x=box.start_x * scale_x,
        start_y=box.start_y * scale_y,
        width=box.width * scale_x,
        height=box.height * scale_y,
        space=space,
    )


def scale_area(area: DetectionArea, scale_x: float, scale_y: float, space: CoordinateSpace) -> DetectionArea:
    if area.is_empty:
        return replace(area, space=space)
    return replace(
        area,
        start_x=area.start_x * scale_x,
        start_y=area.start_y * scale_y,
        width=area.width * scale_x,
        height=area.height * scale_y,
        space=space,
    )


class CoordinateTransformer:
    """
    Maps an image-space `Detection` into display pixels (rotate, then scale).
    """

    def transform(
        self,
        detection: Detection,
        sensor_width: int,
        sensor_height: int,
        display_width: int,
        display_height: int,
        rotation_degrees: int,
    ) -> Detection:
        if detection.space is not CoordinateSpace.IMAGE:
            raise ValueError(f"Detection is already in {detection.space.value} space")
        if sensor_width <= 0 or sensor_height <= 0:
            raise ValueError(f"Sensor size must be positive (got {sensor_width}x{sensor_height})")
        if display_width <= 0 or display_height <= 0:
            raise ValueError(f"Display size must be positive (got {display_width}x{display_height})")

        rotation = normalize_rotation(rotation_degrees)
        base_w, base_h = _base_size(sensor_width, sensor_height, rotation)
        scale_x = display_width / base_w
        scale_y = display_height / base_h

        boxes = tuple(
            scale_box(rotate_box(b, sensor_width, sensor_height, rotation), scale_x, scale_y, CoordinateSpace.DISPLAY)
            for b in detection.bounding_boxes
        )
        area = scale_area(
            rotate_area(detection.area, sensor_width, sensor_height, rotation),
            scale_x,
            scale_y,
            CoordinateSpace.DISPLAY,
        )
        logger.debug(
            "Transformed %d boxes: sensor %dx%d rot %d -> display %dx%d",
            len(boxes),
            sensor_width,
            sensor_height,
            rotation,
            display_width,
            display_height,
        )
        return replace(detection, bounding_boxes=boxes, area=area, space=CoordinateSpace.DISPLAY)
