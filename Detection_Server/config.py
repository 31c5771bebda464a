from __future__ import annotations

import json
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

from yolo_nms.types import SuppressionConfig


_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class ServiceConfig:
    model_path: str = "Models/model3.onnx"
    nms_model_path: str = "Models/nms.onnx"
    input_shape: Tuple[int, int, int, int] = (1, 3, 640, 640)
    top_k: int = 100
    iou_threshold: float = 0.45
    score_threshold: float = 0.25
    host: str = "0.0.0.0"
    port: int = 4040
    onnx_providers: Optional[Tuple[str, ...]] = None
    cors_origins: Tuple[str, ...] = ("*",)
    max_upload_mb: int = 50
    log_level: str = "INFO"
    json_logs: bool = False

    def __post_init__(self) -> None:
        if not self.model_path or not self.nms_model_path:
            raise ValueError("model_path and nms_model_path must be non-empty")
        shape = tuple(self.input_shape)
        if len(shape) != 4 or shape[0] != 1 or shape[1] != 3 or shape[2] <= 0 or shape[3] <= 0:
            raise ValueError(f"input_shape must be [1, 3, H, W] with H, W > 0, got {list(shape)}")
        if not 0 < self.port < 65536:
            raise ValueError("port must be in 1..65535")
        if self.max_upload_mb <= 0:
            raise ValueError("max_upload_mb must be > 0")
        if self.log_level.upper() not in _LOG_LEVELS:
            raise ValueError(f"log_level must be one of {list(_LOG_LEVELS)}")
        # Threshold ranges live on SuppressionConfig.
        self.suppression_config()

    @property
    def max_upload_bytes(self) -> int:
        return self.max_upload_mb * 1024 * 1024

    def suppression_config(self) -> SuppressionConfig:
        return SuppressionConfig(
            top_k=self.top_k,
            iou_threshold=self.iou_threshold,
            score_threshold=self.score_threshold,
        )


def _require_number(payload: Mapping[str, Any], key: str) -> float:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{key} must be a number")
    return float(value)


def _require_int(payload: Mapping[str, Any], key: str) -> int:
    value = payload[key]
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{key} must be an integer")
    return int(value)


def _require_str(payload: Mapping[str, Any], key: str) -> str:
    value = payload[key]
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{key} must be a non-empty string")
    return value.strip()


def _require_str_list(payload: Mapping[str, Any], key: str) -> Tuple[str, ...]:
    value = payload[key]
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        raise ValueError(f"{key} must be a string or list of strings")
    cleaned = tuple(item.strip() for item in value if item.strip())
    if not cleaned:
        raise ValueError(f"{key} must not be empty")
    return cleaned


_STR_KEYS = {"model_path", "nms_model_path", "host", "log_level"}
_INT_KEYS = {"top_k", "port", "max_upload_mb"}
_FLOAT_KEYS = {"iou_threshold", "score_threshold"}
_BOOL_KEYS = {"json_logs"}
_LIST_KEYS = {"onnx_providers", "cors_origins"}


def parse_service_config(payload: Mapping[str, Any], base: ServiceConfig = ServiceConfig()) -> ServiceConfig:
    """
    Overlay a JSON-style mapping onto `base`. Unknown keys are rejected.
    """

    allowed = {f.name for f in fields(ServiceConfig)}
    unknown = sorted(set(payload.keys()) - allowed)
    if unknown:
        raise ValueError(f"Unknown service config keys: {unknown}")

    updates: Dict[str, Any] = {}
    for key in payload:
        if key in _STR_KEYS:
            updates[key] = _require_str(payload, key)
        elif key in _INT_KEYS:
            updates[key] = _require_int(payload, key)
        elif key in _FLOAT_KEYS:
            updates[key] = _require_number(payload, key)
        elif key in _BOOL_KEYS:
            if not isinstance(payload[key], bool):
                raise ValueError(f"{key} must be a boolean")
            updates[key] = payload[key]
        elif key in _LIST_KEYS:
            if key == "onnx_providers" and payload[key] is None:
                updates[key] = None
            else:
                updates[key] = _require_str_list(payload, key)
        elif key == "input_shape":
            shape = payload[key]
            if not isinstance(shape, list) or len(shape) != 4 or any(
                isinstance(v, bool) or not isinstance(v, int) for v in shape
            ):
                raise ValueError("input_shape must be a list of 4 integers")
            updates[key] = tuple(shape)

    return replace(base, **updates)


def load_service_config(path: Path, base: ServiceConfig = ServiceConfig()) -> ServiceConfig:
    if not path.exists():
        raise FileNotFoundError(f"Service config not found: {path}")
    raw = path.read_text(encoding="utf-8")
    try:
        payload = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid service config JSON: {path}") from exc
    if not isinstance(payload, dict):
        raise ValueError("Service config must be a JSON object")
    return parse_service_config(payload, base)


def apply_env(config: ServiceConfig, environ: Optional[Mapping[str, str]] = None) -> ServiceConfig:
    """
    Apply `PORT` from the environment, as hosting platforms set it.
    """

    env = os.environ if environ is None else environ
    port = env.get("PORT")
    if port is None or not port.strip():
        return config
    try:
        value = int(port)
    except ValueError as exc:
        raise ValueError(f"PORT must be an integer, got {port!r}") from exc
    return replace(config, port=value)
