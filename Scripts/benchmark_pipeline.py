from __future__ import annotations

import argparse
import asyncio
import statistics
import time
from dataclasses import dataclass
from pathlib import Path
from typing import List

import numpy as np

from yolo_nms import SuppressionConfig, decode, load_image, load_models, preprocess, run_detector, run_suppression


@dataclass(frozen=True)
class TimingSummary:
    n: int
    mean_ms: float
    p50_ms: float
    p90_ms: float
    p95_ms: float


def _percentile(sorted_values: List[float], q: float) -> float:
    if not sorted_values:
        raise ValueError("No values provided.")
    if q < 0.0 or q > 100.0:
        raise ValueError("q must be in [0, 100].")
    if len(sorted_values) == 1:
        return float(sorted_values[0])
    # Linear interpolation between closest ranks.
    pos = (q / 100.0) * (len(sorted_values) - 1)
    lo = int(np.floor(pos))
    hi = int(np.ceil(pos))
    if lo == hi:
        return float(sorted_values[lo])
    t = pos - lo
    return float(sorted_values[lo] * (1.0 - t) + sorted_values[hi] * t)


def _summarize_ms(values_s: List[float]) -> TimingSummary:
    ms_sorted = sorted(v * 1000.0 for v in values_s)
    return TimingSummary(
        n=len(ms_sorted),
        mean_ms=float(statistics.fmean(ms_sorted)),
        p50_ms=_percentile(ms_sorted, 50.0),
        p90_ms=_percentile(ms_sorted, 90.0),
        p95_ms=_percentile(ms_sorted, 95.0),
    )


def _format_summary(label: str, s: TimingSummary) -> str:
    return (
        f"{label}: n={s.n} mean={s.mean_ms:.3f}ms p50={s.p50_ms:.3f}ms "
        f"p90={s.p90_ms:.3f}ms p95={s.p95_ms:.3f}ms"
    )


async def _run(args: argparse.Namespace) -> int:
    providers = None
    if args.onnx_providers:
        providers = [p.strip() for p in str(args.onnx_providers).split(",") if p.strip()]
    handles = load_models(args.model, args.nms_model, providers=providers)
    cfg = SuppressionConfig(top_k=int(args.topk), iou_threshold=float(args.iou), score_threshold=float(args.conf))
    grid = load_image(Path(args.image).read_bytes())

    t_pre: List[float] = []
    t_det: List[float] = []
    t_nms: List[float] = []
    t_dec: List[float] = []

    for i in range(int(args.warmup) + int(args.repeats)):
        t0 = time.perf_counter()
        blob, ratio = preprocess(grid, int(args.imgsz), int(args.imgsz))
        t1 = time.perf_counter()
        raw = await run_detector(handles.detector, blob)
        t2 = time.perf_counter()
        selected = await run_suppression(handles.suppressor, raw, cfg)
        t3 = time.perf_counter()
        decode(selected, ratio)
        t4 = time.perf_counter()

        if i < int(args.warmup):
            continue
        t_pre.append(t1 - t0)
        t_det.append(t2 - t1)
        t_nms.append(t3 - t2)
        t_dec.append(t4 - t3)

    print(_format_summary("preprocess", _summarize_ms(t_pre)))
    print(_format_summary("detector", _summarize_ms(t_det)))
    print(_format_summary("suppression", _summarize_ms(t_nms)))
    print(_format_summary("decode", _summarize_ms(t_dec)))
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Benchmark per-stage latency of the YOLO + NMS pipeline on one image.")
    parser.add_argument("--image", required=True, help="Path to an input image (repeated N times).")
    parser.add_argument("--model", default="Models/model3.onnx", help="Detector ONNX model.")
    parser.add_argument("--nms-model", default="Models/nms.onnx", help="NMS ONNX model.")
    parser.add_argument("--imgsz", type=int, default=640, help="Square model input size.")
    parser.add_argument(
        "--onnx-providers",
        default=None,
        help='Comma-separated ORT providers, e.g. "CUDAExecutionProvider,CPUExecutionProvider".',
    )
    parser.add_argument("--topk", type=int, default=100, help="Max detections.")
    parser.add_argument("--iou", type=float, default=0.45, help="NMS IoU threshold.")
    parser.add_argument("--conf", type=float, default=0.25, help="Score threshold.")
    parser.add_argument("--warmup", type=int, default=10, help="Iterations to run but not record.")
    parser.add_argument("--repeats", type=int, default=50, help="Recorded iterations.")
    args = parser.parse_args()

    if args.warmup < 0:
        raise ValueError("--warmup must be >= 0")
    if args.repeats < 1:
        raise ValueError("--repeats must be >= 1")
    if args.imgsz < 32:
        raise ValueError("--imgsz must be >= 32")
    return asyncio.run(_run(args))


if __name__ == "__main__":
    raise SystemExit(main())
