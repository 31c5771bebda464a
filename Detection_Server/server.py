from __future__ import annotations

import argparse
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .config import ServiceConfig, apply_env, load_service_config
from .logging import configure_logging, get_logger


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Serve YOLO + NMS detection over HTTP (POST /upload-image).")
    parser.add_argument("--config", default=None, help="JSON service config; CLI flags override its values.")
    parser.add_argument("--model", dest="model_path", default=None, help="Detector ONNX model path.")
    parser.add_argument("--nms-model", dest="nms_model_path", default=None, help="NMS ONNX model path.")
    parser.add_argument("--imgsz", type=int, default=None, help="Square model input size (e.g., 640).")
    parser.add_argument("--topk", dest="top_k", type=int, default=None, help="Max detections returned by NMS.")
    parser.add_argument("--iou", dest="iou_threshold", type=float, default=None, help="NMS IoU threshold.")
    parser.add_argument("--conf", dest="score_threshold", type=float, default=None, help="Score threshold.")
    parser.add_argument("--host", default=None, help="Bind address.")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default 4040, or $PORT).")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--log-level", default=None, help="DEBUG / INFO / WARNING / ERROR.")
    parser.add_argument("--json-logs", action="store_true", default=None, help="Emit JSON log lines.")
    return parser


def resolve_config(args: argparse.Namespace) -> ServiceConfig:
    config = ServiceConfig()
    if args.config:
        config = load_service_config(Path(args.config), config)
    config = apply_env(config)

    updates: Dict[str, Any] = {}
    for key in ("model_path", "nms_model_path", "top_k", "iou_threshold", "score_threshold", "host", "port", "json_logs"):
        value = getattr(args, key)
        if value is not None:
            updates[key] = value
    if args.log_level is not None:
        updates["log_level"] = args.log_level.upper()
    if args.imgsz is not None:
        updates["input_shape"] = (1, 3, int(args.imgsz), int(args.imgsz))
    if args.onnx_providers:
        updates["onnx_providers"] = tuple(p.strip() for p in str(args.onnx_providers).split(",") if p.strip())
    return replace(config, **updates)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    config = resolve_config(args)

    configure_logging(json_logs=config.json_logs, log_level=config.log_level)
    logger = get_logger(__name__)

    import uvicorn

    from .app import create_app

    logger.info("server_starting", host=config.host, port=config.port, model_path=config.model_path)
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)
    return 0
