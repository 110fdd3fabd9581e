from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple, Union

import numpy as np

from .base import InferenceEngine

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


@dataclass(frozen=True)
class OnnxRuntimeBackendConfig:
    """
    Configuration for ONNX Runtime inference.

    - providers: ORT execution providers (e.g., ["CPUExecutionProvider"])
    - input_name/output_name: override auto-selected I/O names if needed
    - num_threads: intra/inter op threads; 1 keeps repeated runs bit-reproducible
    """

    providers: Optional[Sequence[str]] = None
    input_name: Optional[str] = None
    output_name: Optional[str] = None
    num_threads: int = 1

    def __post_init__(self) -> None:
        if self.num_threads < 1:
            raise ValueError("num_threads must be >= 1")


def _concrete_shape(shape: Sequence[Any]) -> Tuple[int, ...]:
    # Dynamic axes come back as strings/None; the batch axis is always 1 here.
    return tuple(int(d) if isinstance(d, int) else 1 for d in shape)


class OnnxRuntimeBackend(InferenceEngine):
    """
    ONNX Runtime engine with an explicit open/close lifecycle.

    Runs sequentially on a single thread. Returns the primary output as a NumPy array.
    """

    def __init__(self, model_path: PathLike, cfg: OnnxRuntimeBackendConfig = OnnxRuntimeBackendConfig()):
        self.model_path = Path(model_path)
        self.cfg = cfg
        self.session: Any = None
        self._input_name: Optional[str] = None
        self._output_name: Optional[str] = None
        self._input_shape: Optional[Tuple[int, ...]] = None
        self._output_shape: Optional[Tuple[int, ...]] = None

    def open(self) -> None:
        if self.session is not None:
            return
        try:
            import onnxruntime as ort  # type: ignore
        except Exception as e:  # pragma: no cover
            raise ImportError(
                "onnxruntime is required for the ONNX backend. Install it with `pip install onnxruntime`."
            ) from e

        if not self.model_path.exists():
            raise FileNotFoundError(str(self.model_path))

        sess_opts = ort.SessionOptions()
        sess_opts.intra_op_num_threads = self.cfg.num_threads
        sess_opts.inter_op_num_threads = self.cfg.num_threads
        sess_opts.execution_mode = ort.ExecutionMode.ORT_SEQUENTIAL
        providers = list(self.cfg.providers) if self.cfg.providers is not None else ["CPUExecutionProvider"]
        session = ort.InferenceSession(str(self.model_path), sess_options=sess_opts, providers=providers)

        input_info = session.get_inputs()[0]
        output_info = session.get_outputs()[0]
        self._input_name = self.cfg.input_name or input_info.name
        self._output_name = self.cfg.output_name or output_info.name
        self._input_shape = _concrete_shape(input_info.shape)
        self._output_shape = _concrete_shape(output_info.shape)
        self.session = session

        logger.info(
            "Loaded %s (input %s %s, output %s %s, providers %s)",
            self.model_path.name,
            self._input_name,
            self._input_shape,
            self._output_name,
            self._output_shape,
            tuple(session.get_providers()),
        )

    def close(self) -> None:
        if self.session is None:
            return
        self.session = None
        logger.info("Closed %s", self.model_path.name)

    def run(self, blob: np.ndarray) -> np.ndarray:
        if self.session is None:
            raise RuntimeError("Model not loaded. Call open() first.")
        outputs = self.session.run([self._output_name], {self._input_name: blob.astype(np.float32, copy=False)})
        return outputs[0]

    @property
    def input_shape(self) -> Tuple[int, ...]:
        if self._input_shape is None:
            raise RuntimeError("Model not loaded.")
        return self._input_shape

    @property
    def output_shape(self) -> Tuple[int, ...]:
        if self._output_shape is None:
            raise RuntimeError("Model not loaded.")
        return self._output_shape

    @property
    def is_open(self) -> bool:
        return self.session is not None
