from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from .errors import InvalidInputError
from .types import PixelGrid, ScaleRatio, channel_count


_TO_RGB = {
    "BGR": "COLOR_BGR2RGB",
    "BGRA": "COLOR_BGRA2RGB",
    "RGBA": "COLOR_RGBA2RGB",
}


@dataclass(frozen=True)
class PreprocessResult:
    blob: np.ndarray
    orig_size: Tuple[int, int]
    ratio: ScaleRatio


def to_rgb(grid: PixelGrid) -> np.ndarray:
    """
    Return the grid as a 3-channel RGB array. Alpha is dropped, not blended.
    """

    img = grid.pixels
    if img is None or not hasattr(img, "shape"):
        raise InvalidInputError("PixelGrid.pixels must be a NumPy array.")
    if img.ndim != 3 or img.shape[0] == 0 or img.shape[1] == 0:
        raise InvalidInputError(f"Expected a non-empty (H, W, C) image, got shape {img.shape}.")
    if img.dtype != np.uint8:
        raise InvalidInputError(f"Expected uint8 pixels, got {img.dtype}.")
    try:
        expected = channel_count(grid.channel_order)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e
    if img.shape[2] != expected:
        raise InvalidInputError(
            f"Channel order {grid.channel_order} needs {expected} channels, image has {img.shape[2]}."
        )

    if grid.channel_order == "RGB":
        return img
    return cv2.cvtColor(img, getattr(cv2, _TO_RGB[grid.channel_order]))


def pad_to_square(image: np.ndarray) -> Tuple[np.ndarray, ScaleRatio]:
    """
    Zero-pad on the right and bottom only until the image is max(W, H) square.

    Origin-aligned padding means the inverse transform is a pure per-axis scale.
    """

    h, w = image.shape[:2]
    max_size = max(w, h)
    x_pad, y_pad = max_size - w, max_size - h
    ratio = ScaleRatio(x=max_size / w, y=max_size / h)

    if x_pad == 0 and y_pad == 0:
        return image, ratio
    padded = cv2.copyMakeBorder(image, 0, y_pad, 0, x_pad, cv2.BORDER_CONSTANT, value=(0, 0, 0))
    return padded, ratio


def preprocess(grid: PixelGrid, target_width: int, target_height: int) -> Tuple[np.ndarray, ScaleRatio]:
    """
    Letterbox a decoded image into the detector's input tensor.

    Returns:
        blob: float32 (1, 3, target_height, target_width), RGB, values in [0, 1]
        ratio: (x_ratio, y_ratio) that `decode` applies to model-input boxes
    """

    if target_width <= 0 or target_height <= 0:
        raise ValueError(f"Target size must be positive, got {target_width}x{target_height}.")

    rgb = to_rgb(grid)
    square, ratio = pad_to_square(rgb)

    # The canvas is already square, so this resize scales both axes uniformly
    # when the target is square too.
    if square.shape[1] != target_width or square.shape[0] != target_height:
        square = cv2.resize(square, (target_width, target_height), interpolation=cv2.INTER_LINEAR)

    blob = square.astype(np.float32) / 255.0
    blob = np.ascontiguousarray(np.transpose(blob, (2, 0, 1))[None, ...])
    return blob, ratio


def letterbox(grid: PixelGrid, input_shape: Tuple[int, int, int, int]) -> PreprocessResult:
    """`preprocess` driven by an NCHW model input shape."""

    _, _, model_h, model_w = input_shape
    blob, ratio = preprocess(grid, target_width=int(model_w), target_height=int(model_h))
    return PreprocessResult(blob=blob, orig_size=(grid.width, grid.height), ratio=ratio)
