from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple, Union

import numpy as np


_CHANNEL_ORDERS = {"BGR": 3, "RGB": 3, "BGRA": 4, "RGBA": 4}


@dataclass(frozen=True)
class PixelGrid:
    """
    Decoded image as an (H, W, C) uint8 array plus its channel order.

    OpenCV decodes to BGR/BGRA, so that is the default.
    """

    pixels: np.ndarray
    channel_order: str = "BGR"

    @property
    def height(self) -> int:
        return int(self.pixels.shape[0])

    @property
    def width(self) -> int:
        return int(self.pixels.shape[1]) if self.pixels.ndim >= 2 else 0

    @property
    def channels(self) -> int:
        return int(self.pixels.shape[2]) if self.pixels.ndim == 3 else 1


@dataclass(frozen=True)
class ScaleRatio:
    """(x_ratio, y_ratio) = (max(W, H) / W, max(W, H) / H) from square padding."""

    x: float = 1.0
    y: float = 1.0

    def as_tuple(self) -> Tuple[float, float]:
        return self.x, self.y


@dataclass(frozen=True)
class SuppressionConfig:
    """
    Thresholds handed to the NMS model as a single 3-element tensor.
    """

    top_k: int = 100
    iou_threshold: float = 0.45
    score_threshold: float = 0.25

    def __post_init__(self) -> None:
        if isinstance(self.top_k, bool) or not isinstance(self.top_k, int) or self.top_k <= 0:
            raise ValueError("top_k must be a positive integer")
        if not 0.0 <= float(self.iou_threshold) <= 1.0:
            raise ValueError("iou_threshold must be in [0, 1]")
        if not 0.0 <= float(self.score_threshold) <= 1.0:
            raise ValueError("score_threshold must be in [0, 1]")

    def as_tensor(self) -> np.ndarray:
        return np.array([self.top_k, self.iou_threshold, self.score_threshold], dtype=np.float32)


@dataclass(frozen=True)
class ModelIO:
    """
    Tensor names of the detector/NMS model pair.

    Defaults match the YOLOv8 ONNX export (`images` -> `output0`) and the
    companion NMS graph (`detection`, `config` -> `selected`).
    """

    detector_input: str = "images"
    detector_output: str = "output0"
    suppression_detection: str = "detection"
    suppression_config: str = "config"
    suppression_output: str = "selected"


@dataclass(frozen=True)
class Detection:
    """
    One detected object, as returned by `decode`.

    `bounding` is (x, y, width, height) with a top-left origin, in model-input
    pixels scaled per axis by the letterbox ratio (max(W, H) / W, max(W, H) / H).
    That equals source-image pixels only when max(W, H) is the model input
    size; `visualize.to_image_boxes` maps onto the source image otherwise.
    """

    label: int
    probability: float
    bounding: Tuple[float, float, float, float]

    def as_xyxy(self) -> Tuple[float, float, float, float]:
        x, y, w, h = self.bounding
        return x, y, x + w, y + h

    def as_dict(self) -> Dict[str, Union[int, float, List[float]]]:
        return {
            "label": self.label,
            "probability": self.probability,
            "bounding": list(self.bounding),
        }


def channel_count(order: str) -> int:
    try:
        return _CHANNEL_ORDERS[order]
    except KeyError:
        raise ValueError(f"Unknown channel order: {order!r}") from None
