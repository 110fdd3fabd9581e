from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from .types import BoundingBox

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NMSConfig:
    iou_threshold: float = 0.45
    max_detections: int = 300

    def __post_init__(self) -> None:
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if self.max_detections < 1:
            raise ValueError("max_detections must be >= 1")


def box_iou(box1: BoundingBox, box2: BoundingBox) -> float:
    """
    Intersection over union of two boxes. Disjoint or edge-touching boxes give exactly 0.
    """

    inter_w = min(box1.end_x, box2.end_x) - max(box1.start_x, box2.start_x)
    inter_h = min(box1.end_y, box2.end_y) - max(box1.start_y, box2.start_y)
    if inter_w <= 0 or inter_h <= 0:
        return 0.0

    # Areas from the same corners as the intersection.
    area1 = (box1.end_x - box1.start_x) * (box1.end_y - box1.start_y)
    area2 = (box2.end_x - box2.start_x) * (box2.end_y - box2.start_y)
    inter = inter_w * inter_h
    union = area1 + area2 - inter
    return min(1.0, inter / union) if union > 0 else 0.0


def nms(boxes: np.ndarray, scores: np.ndarray, cfg: NMSConfig) -> np.ndarray:
    """
    Greedy, class-agnostic NumPy NMS. Expects boxes shape (N,4) in xyxy and scores shape (N,).
    Returns indices of boxes to keep, highest score first.

    Equal scores keep their input order. A box is dropped only when its IoU with a
    kept box is strictly greater than `cfg.iou_threshold`.
    """

    if boxes.size == 0:
        return np.empty((0,), dtype=np.int32)

    x1 = boxes[:, 0]
    y1 = boxes[:, 1]
    x2 = boxes[:, 2]
    y2 = boxes[:, 3]
    areas = (x2 - x1) * (y2 - y1)

    order = np.argsort(-scores, kind="stable")
    keep = []

    while order.size > 0 and len(keep) < cfg.max_detections:
        i = order[0]
        keep.append(i)
        rest = order[1:]

        w = np.minimum(x2[i], x2[rest]) - np.maximum(x1[i], x1[rest])
        h = np.minimum(y2[i], y2[rest]) - np.maximum(y1[i], y1[rest])
        overlapping = (w > 0) & (h > 0)
        inter = np.where(overlapping, w * h, 0.0)
        union = areas[i] + areas[rest] - inter
        with np.errstate(divide="ignore", invalid="ignore"):
            iou = np.minimum(np.where(overlapping & (union > 0), inter / union, 0.0), 1.0)

        order = rest[iou <= cfg.iou_threshold]

    return np.array(keep, dtype=np.int32)


def suppress(candidates: Sequence[BoundingBox], iou_threshold: float) -> List[BoundingBox]:
    """
    Non-maximum suppression over `candidates`; boxes of every class compete with each other.
    """

    if len(candidates) <= 1:
        return list(candidates)

    cfg = NMSConfig(iou_threshold=iou_threshold, max_detections=len(candidates))
    boxes = np.array([c.as_xyxy() for c in candidates], dtype=np.float64)
    scores = np.array([c.confidence for c in candidates], dtype=np.float64)
    keep_idx = nms(boxes, scores, cfg)
    kept = [candidates[int(i)] for i in keep_idx]
    logger.debug("NMS: %d -> %d boxes", len(candidates), len(kept))
    return kept
