from __future__ import annotations

from typing import Dict, Optional, Sequence, Tuple

import cv2
import numpy as np

from .types import Detection


_GOLDEN = 0.618033988749895


def color_for_label(label: int) -> Tuple[int, int, int]:
    """
    Deterministic BGR color for a class index.

    Hues step by the golden ratio so neighbouring labels stay distinguishable.
    """

    hue = int(((int(label) * _GOLDEN) % 1.0) * 180.0)
    hsv = np.array([[[hue, 200, 255]]], dtype=np.uint8)
    b, g, r = cv2.cvtColor(hsv, cv2.COLOR_HSV2BGR)[0, 0]
    return int(b), int(g), int(r)


def _text_color(bg: Tuple[int, int, int]) -> Tuple[int, int, int]:
    b, g, r = bg
    luma = 0.114 * b + 0.587 * g + 0.299 * r
    return (0, 0, 0) if luma > 150 else (255, 255, 255)


def to_image_boxes(
    detections: Sequence[Detection],
    image_size: Tuple[int, int],
    model_size: Tuple[int, int],
) -> np.ndarray:
    """
    Integer (x1, y1, x2, y2) corners of decoded detections on the source image.

    `decode` multiplies model-input boxes by (max/W, max/H). The source image
    is another (W/model_w, H/model_h) away, clipped to the frame.

    Args:
        image_size: (width, height) of the source image
        model_size: (width, height) of the detector input
    """

    img_w, img_h = (int(v) for v in image_size)
    model_w, model_h = (int(v) for v in model_size)
    if img_w <= 0 or img_h <= 0 or model_w <= 0 or model_h <= 0:
        raise ValueError(f"Sizes must be positive, got image {image_size} and model {model_size}.")
    if not detections:
        return np.zeros((0, 4), dtype=np.int32)

    xywh = np.array([d.bounding for d in detections], dtype=np.float64)
    xywh *= np.array([img_w / model_w, img_h / model_h] * 2)
    xyxy = np.concatenate([xywh[:, :2], xywh[:, :2] + xywh[:, 2:]], axis=1)
    xyxy = np.rint(xyxy)
    xyxy[:, 0::2] = np.clip(xyxy[:, 0::2], 0, img_w - 1)
    xyxy[:, 1::2] = np.clip(xyxy[:, 1::2], 0, img_h - 1)
    return xyxy.astype(np.int32)


def _caption(det: Detection, class_names: Optional[Dict[int, str]], show_score: bool) -> str:
    name = class_names.get(det.label, str(det.label)) if class_names else str(det.label)
    return f"{name} {det.probability:.2f}" if show_score else name


def draw_detections(
    image_bgr: np.ndarray,
    detections: Sequence[Detection],
    *,
    model_size: Tuple[int, int],
    class_names: Optional[Dict[int, str]] = None,
    show_score: bool = True,
    thickness: int = 2,
    font_scale: float = 0.5,
) -> np.ndarray:
    """
    Draw decoded detections on a copy of the BGR image they were computed from.

    `model_size` is the detector input (width, height); boxes are mapped back
    onto the image with `to_image_boxes`. Captions sit above a box, or just
    inside it when the box touches the top edge.
    """

    if not isinstance(image_bgr, np.ndarray):
        raise TypeError("image_bgr must be a NumPy array (BGR).")
    if image_bgr.ndim != 3 or image_bgr.shape[2] != 3:
        raise ValueError(f"Expected image shape (H, W, 3), got {image_bgr.shape}")

    out = image_bgr.copy()
    h, w = out.shape[:2]
    boxes = to_image_boxes(detections, (w, h), model_size)
    font = cv2.FONT_HERSHEY_SIMPLEX

    for det, (x1, y1, x2, y2) in zip(detections, boxes.tolist()):
        color = color_for_label(det.label)
        cv2.rectangle(out, (x1, y1), (x2, y2), color, thickness=thickness)

        text = _caption(det, class_names, show_score)
        (tw, th), base = cv2.getTextSize(text, font, font_scale, 1)
        top = y1 - th - base if y1 - th - base >= 0 else y1
        cv2.rectangle(out, (x1, top), (min(x1 + tw, w - 1), min(top + th + base, h - 1)), color, thickness=-1)
        cv2.putText(out, text, (x1, top + th), font, font_scale, _text_color(color), 1, cv2.LINE_AA)

    return out
