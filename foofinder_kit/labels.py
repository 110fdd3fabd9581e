from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Mapping, Optional, Union

from .metadata import class_name_for
from .types import BoundingBox, CoordinateSpace

logger = logging.getLogger(__name__)


def parse_yolo_labels(
    path: Union[str, Path],
    image_width: int,
    image_height: int,
    class_names: Optional[Mapping[int, str]] = None,
) -> List[BoundingBox]:
    """
    Read YOLO ground-truth labels (`class xc yc w h`, normalized) as pixel boxes.

    Ground truth gets confidence 1.0. Lines that don't parse, or describe an empty
    box, are skipped with a warning.
    """

    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Label file not found: {p}")
    if image_width <= 0 or image_height <= 0:
        raise ValueError(f"Image size must be positive (got {image_width}x{image_height})")

    boxes: List[BoundingBox] = []
    with p.open("r", encoding="utf-8") as f:
        for line_no, raw in enumerate(f, start=1):
            line = raw.strip()
            if not line:
                continue
            parts = line.split()
            if len(parts) < 5:
                logger.warning("%s:%d: expected 5 fields, got %d", p.name, line_no, len(parts))
                continue
            try:
                class_id = int(parts[0])
                xc, yc, w, h = (float(v) for v in parts[1:5])
            except ValueError:
                logger.warning("%s:%d: failed to parse line: %s", p.name, line_no, line)
                continue

            try:
                boxes.append(
                    BoundingBox(
                        start_x=(xc - w / 2) * image_width,
                        start_y=(yc - h / 2) * image_height,
                        width=w * image_width,
                        height=h * image_height,
                        confidence=1.0,
                        class_id=class_id,
                        class_name=class_name_for(class_id, class_names),
                        space=CoordinateSpace.IMAGE,
                    )
                )
            except ValueError as exc:
                logger.warning("%s:%d: skipped: %s", p.name, line_no, exc)

    logger.debug("Parsed %d ground truth boxes from %s", len(boxes), p)
    return boxes
