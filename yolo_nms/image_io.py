from __future__ import annotations

import cv2
import numpy as np

from .errors import InvalidInputError
from .types import PixelGrid


def load_image(data: bytes) -> PixelGrid:
    """
    Decode encoded image bytes (PNG, JPEG, ...) into a BGR/BGRA `PixelGrid`.

    Grayscale images are expanded to BGR. An alpha channel is kept here and
    dropped by the preprocessor.
    """

    if not data:
        raise InvalidInputError("Empty image buffer.")

    buf = np.frombuffer(data, dtype=np.uint8)
    img = cv2.imdecode(buf, cv2.IMREAD_UNCHANGED)
    if img is None:
        raise InvalidInputError("Could not decode image bytes.")
    if img.dtype != np.uint8:
        raise InvalidInputError(f"Unsupported pixel depth {img.dtype}; expected 8-bit channels.")
    if img.size == 0:
        raise InvalidInputError("Decoded image has zero area.")

    if img.ndim == 2 or (img.ndim == 3 and img.shape[2] == 1):
        return PixelGrid(cv2.cvtColor(img, cv2.COLOR_GRAY2BGR), "BGR")
    if img.ndim == 3 and img.shape[2] == 3:
        return PixelGrid(img, "BGR")
    if img.ndim == 3 and img.shape[2] == 4:
        return PixelGrid(img, "BGRA")

    raise InvalidInputError(f"Unsupported channel layout {img.shape}.")
