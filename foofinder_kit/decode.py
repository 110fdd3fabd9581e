from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence, Tuple, Union

import numpy as np

from .metadata import DEFAULT_CLASS_NAMES, class_name_for
from .types import BoundingBox, CoordinateSpace, DetectionArea

logger = logging.getLogger(__name__)


class OutputLayout(str, Enum):
    """
    Raw output layouts understood by the decoder. Picked by configuration, never guessed.

    - CORNER: shape (1, N, C>=6), rows of [x1, y1, x2, y2, conf, class_id]
    - CENTER: shape (1, C>=5, N), channel-major rows of [xc, yc, w, h, conf] (single class 0)
    """

    CORNER = "corner"
    CENTER = "center"

    @property
    def min_channels(self) -> int:
        return 6 if self is OutputLayout.CORNER else 5

    @classmethod
    def parse(cls, value: Union[str, "OutputLayout"]) -> "OutputLayout":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as exc:
            choices = ", ".join(m.value for m in cls)
            raise ValueError(f"Unknown output layout {value!r} (expected one of: {choices})") from exc


def layout_dims(layout: OutputLayout, output_shape: Sequence[int]) -> Tuple[int, int]:
    """
    Return (num_candidates, channels) for `output_shape` under `layout`.

    Raises ValueError when the shape can't be read with the requested layout.
    """

    shape = tuple(int(d) for d in output_shape)
    if len(shape) != 3:
        raise ValueError(f"Expected a 3-D output shape, got {shape}")
    if shape[0] != 1:
        raise ValueError(f"Batch > 1 is not supported (got shape {shape}). Pass one image at a time.")

    if layout is OutputLayout.CORNER:
        num, channels = shape[1], shape[2]
    else:
        channels, num = shape[1], shape[2]

    if channels < layout.min_channels:
        raise ValueError(
            f"{layout.value} layout needs >= {layout.min_channels} channels per detection, got shape {shape}"
        )
    if num < 0:
        raise ValueError(f"Negative candidate count in shape {shape}")
    return num, channels


class OutputDecoder:
    """
    Turns a flat model output buffer into candidate boxes in detection-area pixels.

    Only sanity rejects happen here (NaN or out-of-range confidence, degenerate boxes);
    the configured confidence threshold is applied later by the filter.
    """

    def __init__(self, layout: Union[str, OutputLayout], class_names: Optional[Dict[int, str]] = None):
        self.layout = OutputLayout.parse(layout)
        self.class_names = dict(DEFAULT_CLASS_NAMES if class_names is None else class_names)

    def decode(
        self,
        raw_output: Union[Sequence[float], np.ndarray],
        output_shape: Sequence[int],
        detection_area: DetectionArea,
    ) -> List[BoundingBox]:
        num, channels = layout_dims(self.layout, output_shape)
        buf = np.asarray(raw_output, dtype=np.float32).reshape(-1)

        if self.layout is OutputLayout.CORNER:
            x1, y1, x2, y2, conf, cls = self._corner_columns(buf, num, channels)
        else:
            x1, y1, x2, y2, conf, cls = self._center_columns(buf, num, channels)

        if conf.size < num:
            logger.debug("Output buffer truncated: %d of %d candidates readable", conf.size, num)

        # Model space -> detection-area pixels, clamped to the area.
        ax, ay = float(detection_area.start_x), float(detection_area.start_y)
        aw, ah = float(detection_area.width), float(detection_area.height)
        px1 = np.clip(ax + x1 * aw, ax, ax + aw)
        py1 = np.clip(ay + y1 * ah, ay, ay + ah)
        px2 = np.clip(ax + x2 * aw, ax, ax + aw)
        py2 = np.clip(ay + y2 * ah, ay, ay + ah)
        widths = px2 - px1
        heights = py2 - py1

        with np.errstate(invalid="ignore"):
            # NaN compares False everywhere, so NaN conf/coords/class ids fall out here.
            # Confidence above 1 is dropped as well.
            keep = (conf >= 0) & (conf <= 1) & np.isfinite(cls) & (cls >= 0) & (widths > 0) & (heights > 0)

        boxes = [
            BoundingBox(
                start_x=float(px1[i]),
                start_y=float(py1[i]),
                width=float(widths[i]),
                height=float(heights[i]),
                confidence=float(conf[i]),
                class_id=int(cls[i]),
                class_name=class_name_for(int(cls[i]), self.class_names),
                space=CoordinateSpace.IMAGE,
            )
            for i in np.flatnonzero(keep)
        ]
        logger.debug("Decoded %d candidates out of %d (%s layout)", len(boxes), conf.size, self.layout.value)
        return boxes

    # ------------------------------------------------------------------ #
    # Layout readers
    # ------------------------------------------------------------------ #
    @staticmethod
    def _corner_columns(buf: np.ndarray, num: int, channels: int):
        # Only fully available rows are read.
        rows = min(num, buf.size // channels)
        table = buf[: rows * channels].reshape(rows, channels).astype(np.float64)
        x1, y1, x2, y2, conf = table[:, 0], table[:, 1], table[:, 2], table[:, 3], table[:, 4]
        # Truncate toward zero; NaN stays NaN so it gets rejected with the rest.
        cls = np.trunc(table[:, 5])
        return x1, y1, x2, y2, conf, cls

    @staticmethod
    def _center_columns(buf: np.ndarray, num: int, channels: int):
        # Channel-major: candidate i is complete once its confidence (row 4) is in the buffer.
        rows = int(min(num, max(0, buf.size - 4 * num)))
        cx = buf[0 * num: 0 * num + rows].astype(np.float64)
        cy = buf[1 * num: 1 * num + rows].astype(np.float64)
        w = buf[2 * num: 2 * num + rows].astype(np.float64)
        h = buf[3 * num: 3 * num + rows].astype(np.float64)
        conf = buf[4 * num: 4 * num + rows].astype(np.float64)
        cls = np.zeros(rows, dtype=np.float64)
        return cx - w / 2, cy - h / 2, cx + w / 2, cy + h / 2, conf, cls
