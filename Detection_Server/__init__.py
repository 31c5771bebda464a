"""
HTTP service layer built on top of `yolo_nms`.

The detection runtime stays in `yolo_nms`; this package only adds
- configuration (JSON file / $PORT / CLI flags)
- structured logging
- the FastAPI app and its uvicorn entry point
"""

from __future__ import annotations

from .config import ServiceConfig, apply_env, load_service_config, parse_service_config
from .logging import configure_logging, get_logger

__all__ = [
    "ServiceConfig",
    "apply_env",
    "load_service_config",
    "parse_service_config",
    "configure_logging",
    "get_logger",
]
