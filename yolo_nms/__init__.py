"""
Two-stage YOLO + NMS-model inference helpers.

Letterboxes an image onto a square canvas, runs a detector and a separate NMS
graph through a pluggable backend (ONNX Runtime by default), and decodes the
surviving rows into detections scaled by the letterbox ratio.
"""

from .types import Detection, ModelIO, PixelGrid, ScaleRatio, SuppressionConfig
from .errors import DetectionError, InferenceError, InvalidInputError, ModelNotReadyError
from .image_io import load_image
from .letterbox import letterbox, pad_to_square, preprocess
from .invoke import run_detector, run_suppression
from .decode import decode, decode_row
from .runtime import (
    DetectionPipeline,
    ModelHandles,
    ModelRegistry,
    ModelState,
    find_project_root,
    load_models,
    resolve_path,
)
from .metadata import load_class_names
from .visualize import draw_detections, to_image_boxes

__all__ = [
    "Detection",
    "ModelIO",
    "PixelGrid",
    "ScaleRatio",
    "SuppressionConfig",
    "DetectionError",
    "InferenceError",
    "InvalidInputError",
    "ModelNotReadyError",
    "load_image",
    "letterbox",
    "pad_to_square",
    "preprocess",
    "run_detector",
    "run_suppression",
    "decode",
    "decode_row",
    "DetectionPipeline",
    "ModelHandles",
    "ModelRegistry",
    "ModelState",
    "find_project_root",
    "load_models",
    "resolve_path",
    "load_class_names",
    "draw_detections",
    "to_image_boxes",
]
