from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

from .backends.base import InferenceEngine
from .decode import OutputDecoder, OutputLayout, layout_dims
from .filtering import filter_by_confidence
from .metadata import DEFAULT_CLASS_NAMES
from .nms import suppress
from .preprocess import PreprocessConfig, to_input_blob
from .results import FrameFailure, FrameResult, FrameSuccess, PipelineStage, detection_or_empty
from .transform import CoordinateTransformer, display_size_for_rotation, normalize_rotation
from .types import CoordinateSpace, Detection, DetectionArea

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# A checkout is recognised by its packaging file or by the library package sitting beside it.
PROJECT_MARKERS: Tuple[str, ...] = ("pyproject.toml", "foofinder_kit", ".git")


def find_project_root(start: Optional[PathLike] = None, markers: Sequence[str] = PROJECT_MARKERS) -> Path:
    """Nearest directory at or above `start` (default: cwd) holding one of `markers`; `start` itself if none does."""

    here = Path.cwd() if start is None else Path(start)
    here = here.resolve()
    if here.is_file():
        here = here.parent
    return next((d for d in (here, *here.parents) if any((d / m).exists() for m in markers)), here)


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """Model paths such as `models/foo.onnx` are taken relative to `root`, or to the checkout when `root` is auto."""

    candidate = Path(path)
    if candidate.is_absolute():
        return candidate
    base = find_project_root() if root in (None, "auto") else Path(root)
    return (base / candidate).resolve()


@dataclass(frozen=True)
class PipelineConfig:
    confidence_threshold: float = 0.8
    iou_threshold: float = 0.45
    layout: OutputLayout = OutputLayout.CORNER
    class_names: Dict[int, str] = field(default_factory=lambda: dict(DEFAULT_CLASS_NAMES))
    # None: take the input size from the model's declared input shape at open().
    input_size: Optional[Tuple[int, int]] = None
    channels_first: bool = True

    def __post_init__(self) -> None:
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be within [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        object.__setattr__(self, "layout", OutputLayout.parse(self.layout))


class DetectionPipeline:
    """
    Per-frame detection: preprocess -> inference -> decode -> filter -> NMS -> display transform.

    The pipeline owns its inference engine. `open()` must succeed before frames are
    analyzed; its errors propagate. Per-frame errors never propagate from `analyze()`,
    which returns `Detection.empty()` instead. `run()` exposes the same work as a
    `FrameSuccess | FrameFailure` so callers can see which stage failed.

    Not reentrant: call it from one thread only.
    """

    def __init__(self, engine: InferenceEngine, cfg: PipelineConfig = PipelineConfig()):
        self.engine = engine
        self.cfg = cfg
        self.decoder = OutputDecoder(cfg.layout, cfg.class_names)
        self.transformer = CoordinateTransformer()
        self._preprocess_cfg: Optional[PreprocessConfig] = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def open(self) -> "DetectionPipeline":
        if self.is_open:
            return self
        self.engine.open()
        try:
            # Fail setup rather than every frame when the model doesn't match the layout.
            layout_dims(self.cfg.layout, self.engine.output_shape)
            self._preprocess_cfg = PreprocessConfig(
                input_size=self.cfg.input_size or self._model_input_size(),
                channels_first=self.cfg.channels_first,
            )
        except Exception:
            self.engine.close()
            raise
        logger.info(
            "Pipeline ready (%s, layout=%s, conf>=%.2f, iou>%.2f, input=%s)",
            self.engine.name,
            self.cfg.layout.value,
            self.cfg.confidence_threshold,
            self.cfg.iou_threshold,
            self._preprocess_cfg.input_size,
        )
        return self

    def close(self) -> None:
        self._preprocess_cfg = None
        self.engine.close()

    @property
    def is_open(self) -> bool:
        return self._preprocess_cfg is not None and self.engine.is_open

    def __enter__(self) -> "DetectionPipeline":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _model_input_size(self) -> Tuple[int, int]:
        shape = tuple(self.engine.input_shape)
        if len(shape) != 4:
            raise ValueError(f"Expected a 4-D model input shape, got {shape}")
        if self.cfg.channels_first:
            _, _, h, w = shape
        else:
            _, h, w, _ = shape
        return int(w), int(h)

    # ------------------------------------------------------------------ #
    # Per frame
    # ------------------------------------------------------------------ #
    def process_output(
        self,
        raw_output: Union[Sequence[float], np.ndarray],
        output_shape: Sequence[int],
        area: DetectionArea,
    ) -> FrameResult:
        """
        Decode, filter and suppress one raw output tensor. Boxes stay in image space.
        """

        try:
            candidates = self.decoder.decode(raw_output, output_shape, area)
        except Exception as exc:
            return self._failure(PipelineStage.DECODE, exc)

        try:
            candidates = filter_by_confidence(candidates, self.cfg.confidence_threshold)
        except Exception as exc:
            return self._failure(PipelineStage.FILTER, exc)

        try:
            kept = suppress(candidates, self.cfg.iou_threshold)
        except Exception as exc:
            return self._failure(PipelineStage.SUPPRESS, exc)

        logger.debug(
            "Kept %d of %d candidates above confidence %.2f",
            len(kept),
            len(candidates),
            self.cfg.confidence_threshold,
        )
        return FrameSuccess(
            Detection(
                bounding_boxes=tuple(kept),
                area=area,
                raw_detections=len(candidates),
                after_nms_detections=len(kept),
                space=CoordinateSpace.IMAGE,
            )
        )

    def run(
        self,
        image_bgr: np.ndarray,
        rotation_degrees: int = 0,
        display_size: Optional[Tuple[int, int]] = None,
    ) -> FrameResult:
        """
        Analyze one sensor-oriented BGR frame.

        Args:
            image_bgr: frame as delivered by the camera (H, W, 3)
            rotation_degrees: clockwise rotation from sensor to display orientation
            display_size: (width, height) of the view boxes are drawn on; defaults
                to the rotated frame size
        """

        if not self.is_open or self._preprocess_cfg is None:
            return FrameFailure(PipelineStage.INFERENCE, "pipeline is not open")

        try:
            sensor_h, sensor_w = image_bgr.shape[:2]
            area = DetectionArea.square_from_frame(sensor_w, sensor_h)
            blob = to_input_blob(image_bgr, area, self._preprocess_cfg)
            rotation = normalize_rotation(rotation_degrees)
            display_w, display_h = display_size or display_size_for_rotation(sensor_w, sensor_h, rotation)
        except Exception as exc:
            return self._failure(PipelineStage.PREPROCESS, exc)

        try:
            start = time.perf_counter()
            raw = np.asarray(self.engine.run(blob))
            inference_ms = int(round((time.perf_counter() - start) * 1000.0))
        except Exception as exc:
            return self._failure(PipelineStage.INFERENCE, exc)

        output_shape = raw.shape if raw.ndim == 3 else self.engine.output_shape
        result = self.process_output(raw, output_shape, area)
        if isinstance(result, FrameFailure):
            return result

        try:
            detection = self.transformer.transform(
                replace(result.detection, inference_ms=inference_ms),
                sensor_w,
                sensor_h,
                display_w,
                display_h,
                rotation,
            )
        except Exception as exc:
            return self._failure(PipelineStage.TRANSFORM, exc)

        return FrameSuccess(detection)

    def analyze(
        self,
        image_bgr: np.ndarray,
        rotation_degrees: int = 0,
        display_size: Optional[Tuple[int, int]] = None,
    ) -> Detection:
        return detection_or_empty(self.run(image_bgr, rotation_degrees, display_size))

    def __call__(self, image_bgr: np.ndarray, rotation_degrees: int = 0) -> Detection:
        return self.analyze(image_bgr, rotation_degrees)

    @staticmethod
    def _failure(stage: PipelineStage, exc: Exception) -> FrameFailure:
        logger.warning("Frame dropped at %s stage: %s", stage.value, exc, exc_info=True)
        return FrameFailure(stage=stage, reason=str(exc) or type(exc).__name__, error=exc)


def load_pipeline(
    model_path: PathLike,
    *,
    root: Optional[PathLike] = "auto",
    cfg: PipelineConfig = PipelineConfig(),
    onnx_providers: Optional[Sequence[str]] = None,
    onnx_input_name: Optional[str] = None,
    onnx_output_name: Optional[str] = None,
) -> DetectionPipeline:
    """
    Create a pipeline for an ONNX model on disk. The pipeline is returned unopened:
    call `open()` (or use it as a context manager) to load the model.

        with load_pipeline("models/foo.onnx") as pipe:
            detection = pipe.analyze(frame, rotation_degrees=90)
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    resolved = resolve_path(model_path, root=root)
    if resolved.suffix.lower() != ".onnx":
        raise ValueError(f"Only .onnx models are supported (got '{resolved.suffix}')")

    backend = OnnxRuntimeBackend(
        resolved,
        OnnxRuntimeBackendConfig(
            providers=onnx_providers,
            input_name=onnx_input_name,
            output_name=onnx_output_name,
        ),
    )
    return DetectionPipeline(backend, cfg)
