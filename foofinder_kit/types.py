from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Tuple


class CoordinateSpace(str, Enum):
    """
    Pixel space a box/area lives in.

    IMAGE: pixels of the camera frame as the sensor delivers it.
    DISPLAY: display-oriented pixels after rotation + scaling.
    """

    IMAGE = "image"
    DISPLAY = "display"


@dataclass(frozen=True)
class BoundingBox:
    """
    Axis-aligned box in (start, size) form. Zero or negative area and confidence
    outside [0, 1] are rejected.
    """

    start_x: float
    start_y: float
    width: float
    height: float
    confidence: float
    class_id: int = 0
    class_name: str = "foo"
    space: CoordinateSpace = CoordinateSpace.IMAGE

    def __post_init__(self) -> None:
        if not (self.width > 0 and self.height > 0):
            raise ValueError(f"BoundingBox needs width > 0 and height > 0 (got {self.width}x{self.height})")
        if self.class_id < 0:
            raise ValueError(f"class_id must be >= 0 (got {self.class_id})")
        # NaN passes here; the confidence filter drops it.
        if self.confidence < 0 or self.confidence > 1:
            raise ValueError(f"confidence must be within [0, 1] (got {self.confidence})")

    @property
    def end_x(self) -> float:
        return self.start_x + self.width

    @property
    def end_y(self) -> float:
        return self.start_y + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        return self.start_x, self.start_y, self.end_x, self.end_y


@dataclass(frozen=True)
class DetectionArea:
    """
    Square crop of the camera frame that was fed to the model.

    `{0, 0, 0, 0}` is the "empty" sentinel used when a frame fails.
    """

    start_x: float
    start_y: float
    width: float
    height: float
    space: CoordinateSpace = CoordinateSpace.IMAGE

    def __post_init__(self) -> None:
        if self.is_empty:
            return
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"DetectionArea needs a positive size (got {self.width}x{self.height})")
        # Display scaling may be non-uniform, so squareness only holds in image space.
        if self.space is CoordinateSpace.IMAGE and not math.isclose(self.width, self.height):
            raise ValueError(f"DetectionArea must be square in image space (got {self.width}x{self.height})")

    @property
    def is_empty(self) -> bool:
        return self.start_x == 0 and self.start_y == 0 and self.width == 0 and self.height == 0

    @classmethod
    def empty(cls) -> "DetectionArea":
        return cls(0.0, 0.0, 0.0, 0.0)

    @classmethod
    def square_from_frame(cls, frame_width: int, frame_height: int) -> "DetectionArea":
        """Largest square anchored at the frame origin."""
        side = float(min(frame_width, frame_height))
        if side <= 0:
            raise ValueError(f"Frame size must be positive (got {frame_width}x{frame_height})")
        return cls(0.0, 0.0, side, side)


@dataclass(frozen=True)
class Detection:
    """
    Result of one analyzed frame. Never mutated and never merged with another frame.
    """

    bounding_boxes: Tuple[BoundingBox, ...]
    area: DetectionArea
    inference_ms: int = -1
    fps: float = -1.0
    raw_detections: int = 0
    after_nms_detections: int = 0
    space: CoordinateSpace = CoordinateSpace.IMAGE

    def __post_init__(self) -> None:
        # Accept any sequence but store a tuple so the value stays immutable.
        if not isinstance(self.bounding_boxes, tuple):
            object.__setattr__(self, "bounding_boxes", tuple(self.bounding_boxes))
        for box in self.bounding_boxes:
            if box.space is not self.space:
                raise ValueError(f"Box in {box.space.value} space attached to a {self.space.value} detection")

    @classmethod
    def empty(cls) -> "Detection":
        return cls(bounding_boxes=(), area=DetectionArea.empty())

    @property
    def is_empty(self) -> bool:
        return not self.bounding_boxes and self.area.is_empty
