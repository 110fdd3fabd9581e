from __future__ import annotations

import math
from typing import List, Sequence

from .types import BoundingBox


def filter_by_confidence(candidates: Sequence[BoundingBox], threshold: float) -> List[BoundingBox]:
    """
    Keep candidates with `confidence >= threshold` (inclusive), dropping NaN confidences.

    Order is preserved and boxes are returned as-is.
    """

    if math.isnan(threshold) or not 0.0 <= threshold <= 1.0:
        raise ValueError(f"confidence threshold must be within [0, 1] (got {threshold})")
    return [c for c in candidates if not math.isnan(c.confidence) and c.confidence >= threshold]
