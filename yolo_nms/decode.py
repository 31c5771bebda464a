from __future__ import annotations

from typing import List, Tuple

import numpy as np

from .errors import InferenceError
from .types import Detection, ScaleRatio


def _rows(selected: np.ndarray) -> np.ndarray:
    p = np.asarray(selected)
    if p.ndim == 3:
        if p.shape[0] != 1:
            raise InferenceError(f"Batch > 1 is not supported (got shape {p.shape}).")
        p = p[0]
    if p.ndim != 2:
        raise InferenceError(f"Unsupported suppression output shape: {p.shape}")
    if p.shape[1] < 5:
        raise InferenceError(f"Rows need [cx, cy, w, h, scores...], got width {p.shape[1]}.")
    return p


def center_to_corner(box: np.ndarray, ratio: ScaleRatio) -> Tuple[float, float, float, float]:
    """
    (cx, cy, w, h) in model-input pixels -> (x, y, w, h) scaled by the letterbox ratio.

    Padding was bottom/right only, so no offset is subtracted.
    """

    cx, cy, w, h = (float(v) for v in box[:4])
    return (
        (cx - 0.5 * w) * ratio.x,
        (cy - 0.5 * h) * ratio.y,
        w * ratio.x,
        h * ratio.y,
    )


def decode_row(row: np.ndarray, ratio: ScaleRatio) -> Detection:
    row = np.asarray(row)
    scores = row[4:]
    # np.argmax returns the first maximum, so ties go to the lowest class id.
    label = int(np.argmax(scores))
    return Detection(
        label=label,
        probability=float(scores[label]),
        bounding=center_to_corner(row[0:4], ratio),
    )


def decode(selected: np.ndarray, ratio: ScaleRatio) -> List[Detection]:
    """
    Convert the NMS output into detections, keeping the model's row order.

    Args:
        selected: (1, N, 4 + C) or (N, 4 + C) rows of [cx, cy, w, h, class_scores...]
        ratio: scale ratio from letterboxing
    """

    rows = _rows(selected)
    return [decode_row(row, ratio) for row in rows]
