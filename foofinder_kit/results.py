from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from .types import Detection


class PipelineStage(str, Enum):
    PREPROCESS = "preprocess"
    INFERENCE = "inference"
    DECODE = "decode"
    FILTER = "filter"
    SUPPRESS = "suppress"
    TRANSFORM = "transform"


@dataclass(frozen=True)
class FrameSuccess:
    detection: Detection

    @property
    def ok(self) -> bool:
        return True


@dataclass(frozen=True)
class FrameFailure:
    """
    Why a frame produced no result. Only the pipeline's outward boundary turns this
    into an empty `Detection`.
    """

    stage: PipelineStage
    reason: str
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return False


FrameResult = Union[FrameSuccess, FrameFailure]


def detection_or_empty(result: FrameResult) -> Detection:
    if isinstance(result, FrameSuccess):
        return result.detection
    return Detection.empty()
