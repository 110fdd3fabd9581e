"""
Inference engines for foofinder_kit.

Engines are kept in a separate module so core functionality (decode/NMS/transform)
stays lightweight and can be used without installing inference runtimes.
"""

from __future__ import annotations

from .base import InferenceEngine

__all__ = ["InferenceEngine"]
