"""
Inference backends for yolo_nms.

A backend is anything with `infer(feeds) -> np.ndarray`: it takes named input
tensors and returns its primary output. Backends are kept in a separate module
so pre/post-processing stays importable without an inference runtime.
"""

from __future__ import annotations

from typing import Mapping, Protocol

import numpy as np


class InferenceBackend(Protocol):
    def infer(self, feeds: Mapping[str, np.ndarray]) -> np.ndarray:
        ...


__all__ = ["InferenceBackend"]
