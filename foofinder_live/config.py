from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from foofinder_kit.decode import OutputLayout
from foofinder_kit.metadata import DEFAULT_CLASS_NAMES
from foofinder_kit.pipeline import PipelineConfig


@dataclass(frozen=True)
class DetectorProfile:
    schema_version: int
    model_path: str
    layout: OutputLayout = OutputLayout.CORNER
    confidence_threshold: float = 0.8
    iou_threshold: float = 0.45
    input_size: Optional[Tuple[int, int]] = None
    channels_first: bool = True
    class_names: Dict[int, str] = field(default_factory=lambda: dict(DEFAULT_CLASS_NAMES))
    notes: Optional[str] = None

    def __post_init__(self) -> None:
        if self.schema_version != 1:
            raise ValueError("detector profile schema_version must be 1")
        if not self.model_path:
            raise ValueError("model_path must not be empty")
        if not 0.0 <= self.confidence_threshold <= 1.0:
            raise ValueError("confidence_threshold must be within [0, 1]")
        if not 0.0 <= self.iou_threshold <= 1.0:
            raise ValueError("iou_threshold must be within [0, 1]")
        if self.input_size is not None and (self.input_size[0] < 1 or self.input_size[1] < 1):
            raise ValueError("input_size must be positive")
        object.__setattr__(self, "layout", OutputLayout.parse(self.layout))

    def pipeline_config(self) -> PipelineConfig:
        return PipelineConfig(
            confidence_threshold=self.confidence_threshold,
            iou_threshold=self.iou_threshold,
            layout=self.layout,
            class_names=dict(self.class_names),
            input_size=self.input_size,
            channels_first=self.channels_first,
        )


_KIND_CHECKS = {
    "a number": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "an integer": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "a non-empty string": lambda v: isinstance(v, str) and bool(v.strip()),
}


def _required(payload: Dict[str, Any], key: str, kind: str) -> Any:
    """Profile value for `key`, rejected when absent or not of `kind` (one of `_KIND_CHECKS`)."""
    try:
        value = payload[key]
    except KeyError:
        raise ValueError(f"Missing required key: {key}") from None
    if not _KIND_CHECKS[kind](value):
        raise ValueError(f"{key} must be {kind}")
    return value.strip() if isinstance(value, str) else value


def _parse_input_size(value: Any) -> Tuple[int, int]:
    if isinstance(value, int) and not isinstance(value, bool):
        return value, value
    if (
        isinstance(value, list)
        and len(value) == 2
        and all(isinstance(v, int) and not isinstance(v, bool) for v in value)
    ):
        return value[0], value[1]
    raise ValueError("input_size must be an integer or a [width, height] pair")


def _parse_class_names(value: Any) -> Dict[int, str]:
    if not isinstance(value, dict):
        raise ValueError("class_names must be an object mapping class id to name")
    names: Dict[int, str] = {}
    for key, name in value.items():
        if not str(key).isdigit():
            raise ValueError(f"class_names key must be a non-negative integer (got {key!r})")
        if not isinstance(name, str):
            raise ValueError(f"class_names[{key}] must be a string")
        names[int(key)] = name
    return names


def load_detector_profile(path: Path) -> DetectorProfile:
    if not path.exists():
        raise FileNotFoundError(f"Detector profile not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid detector profile JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Detector profile must be a JSON object")

    allowed = {
        "schema_version",
        "model_path",
        "layout",
        "confidence_threshold",
        "iou_threshold",
        "input_size",
        "channels_first",
        "class_names",
        "notes",
    }
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown detector profile keys: {unknown}")

    schema_version = _required(payload, "schema_version", "an integer")
    model_path = _required(payload, "model_path", "a non-empty string")
    layout = OutputLayout.parse(_required(payload, "layout", "a non-empty string"))
    confidence_threshold = float(_required(payload, "confidence_threshold", "a number"))
    iou_threshold = float(_required(payload, "iou_threshold", "a number")) if "iou_threshold" in payload else 0.45

    input_size = _parse_input_size(payload["input_size"]) if payload.get("input_size") is not None else None

    channels_first = payload.get("channels_first", True)
    if not isinstance(channels_first, bool):
        raise ValueError("channels_first must be a boolean")

    class_names = _parse_class_names(payload["class_names"]) if "class_names" in payload else dict(DEFAULT_CLASS_NAMES)

    notes = payload.get("notes")
    if notes is not None and not isinstance(notes, str):
        raise ValueError("notes must be a string if provided")

    # Relative model paths are relative to the profile file.
    model = Path(model_path)
    if not model.is_absolute():
        model = (path.parent / model).resolve()

    return DetectorProfile(
        schema_version=schema_version,
        model_path=str(model),
        layout=layout,
        confidence_threshold=confidence_threshold,
        iou_threshold=iou_threshold,
        input_size=input_size,
        channels_first=channels_first,
        class_names=class_names,
        notes=notes,
    )
