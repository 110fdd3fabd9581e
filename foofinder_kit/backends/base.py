"""Abstract inference engine interface.

The pipeline owns exactly one engine and drives its lifecycle explicitly:
open() once, run() per frame from a single thread, close() on teardown.
"""

from abc import ABC, abstractmethod
from typing import Tuple

import numpy as np


class InferenceEngine(ABC):
    """Abstract base class for inference engines."""

    @abstractmethod
    def open(self) -> None:
        """Load the model. Failures propagate to the caller."""

    @abstractmethod
    def close(self) -> None:
        """Release the model. Safe to call repeatedly."""

    @abstractmethod
    def run(self, blob: np.ndarray) -> np.ndarray:
        """Run inference on one preprocessed input blob and return the raw output tensor."""

    @property
    @abstractmethod
    def input_shape(self) -> Tuple[int, ...]:
        """Declared model input shape."""

    @property
    @abstractmethod
    def output_shape(self) -> Tuple[int, ...]:
        """Declared model output shape."""

    @property
    @abstractmethod
    def is_open(self) -> bool:
        """True between open() and close()."""

    @property
    def name(self) -> str:
        """Engine name for logging."""
        return self.__class__.__name__

    def __enter__(self) -> "InferenceEngine":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
