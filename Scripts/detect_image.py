from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

import cv2

from yolo_nms import DetectionPipeline, SuppressionConfig, draw_detections, load_class_names, load_image, load_models


async def _run(args: argparse.Namespace) -> int:
    data = Path(args.image).read_bytes()
    providers = None
    if args.onnx_providers:
        providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]

    pipeline = DetectionPipeline(
        input_shape=(1, 3, int(args.imgsz), int(args.imgsz)),
        suppression=SuppressionConfig(
            top_k=int(args.topk),
            iou_threshold=float(args.iou),
            score_threshold=float(args.conf),
        ),
    )
    ready = await pipeline.startup(lambda: load_models(args.model, args.nms_model, providers=providers))
    if not ready:
        print(f"Models failed to load: {pipeline.registry.error}")
        return 1

    grid = load_image(data)
    detections = await pipeline.detect_grid(grid)
    print(json.dumps({"detections": [d.as_dict() for d in detections]}, indent=2))

    if args.out:
        class_names = load_class_names(args.metadata) if args.metadata else None
        _, _, model_h, model_w = pipeline.input_shape
        vis = draw_detections(
            grid.pixels[:, :, :3], detections, model_size=(model_w, model_h), class_names=class_names
        )
        if not cv2.imwrite(args.out, vis):
            raise RuntimeError(f"Could not write annotated image: {args.out}")
        print(f"Wrote {args.out}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Run YOLO + NMS detection on one image and print the detections.")
    parser.add_argument("image", help="Path to an input image.")
    parser.add_argument("--model", default="Models/model3.onnx", help="Detector ONNX model.")
    parser.add_argument("--nms-model", default="Models/nms.onnx", help="NMS ONNX model.")
    parser.add_argument("--metadata", default=None, help="Optional metadata.yaml with class names (for --out).")
    parser.add_argument("--imgsz", type=int, default=640, help="Square model input size.")
    parser.add_argument("--topk", type=int, default=100, help="Max detections.")
    parser.add_argument("--iou", type=float, default=0.45, help="NMS IoU threshold.")
    parser.add_argument("--conf", type=float, default=0.25, help="Score threshold.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--out", default=None, help="Write an annotated copy of the image here.")
    args = parser.parse_args()

    if args.imgsz < 32:
        raise ValueError("--imgsz must be >= 32")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
