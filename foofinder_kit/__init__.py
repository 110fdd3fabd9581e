"""
Detection post-processing for the FooFinder camera detector.

Turns a raw model output tensor into display-ready boxes: decode (corner or
center layout) -> confidence filter -> class-agnostic NMS -> rotate/scale into
the display frame. Core modules only need NumPy; OpenCV is used for
preprocessing/drawing and ONNX Runtime for the bundled inference engine.
"""

from .types import BoundingBox, CoordinateSpace, Detection, DetectionArea
from .decode import OutputDecoder, OutputLayout
from .filtering import filter_by_confidence
from .nms import NMSConfig, box_iou, nms, suppress
from .transform import CoordinateTransformer, display_size_for_rotation, normalize_rotation
from .preprocess import PreprocessConfig, to_input_blob
from .results import FrameFailure, FrameResult, FrameSuccess, PipelineStage
from .pipeline import DetectionPipeline, PipelineConfig, find_project_root, load_pipeline, resolve_path
from .metadata import DEFAULT_CLASS_NAMES, class_name_for, load_class_names
from .labels import parse_yolo_labels
from .visualize import draw_detection, draw_ground_truth, draw_stats, format_stats

__all__ = [
    "BoundingBox",
    "CoordinateSpace",
    "Detection",
    "DetectionArea",
    "OutputDecoder",
    "OutputLayout",
    "filter_by_confidence",
    "NMSConfig",
    "box_iou",
    "nms",
    "suppress",
    "CoordinateTransformer",
    "display_size_for_rotation",
    "normalize_rotation",
    "PreprocessConfig",
    "to_input_blob",
    "FrameFailure",
    "FrameResult",
    "FrameSuccess",
    "PipelineStage",
    "DetectionPipeline",
    "PipelineConfig",
    "find_project_root",
    "load_pipeline",
    "resolve_path",
    "DEFAULT_CLASS_NAMES",
    "class_name_for",
    "load_class_names",
    "parse_yolo_labels",
    "draw_detection",
    "draw_ground_truth",
    "draw_stats",
    "format_stats",
]
