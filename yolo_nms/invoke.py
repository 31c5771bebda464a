from __future__ import annotations

import asyncio
from concurrent.futures import Executor
from typing import Mapping, Optional

import numpy as np

from .backends import InferenceBackend
from .errors import InferenceError
from .types import ModelIO, SuppressionConfig


async def _call_backend(
    backend: InferenceBackend,
    feeds: Mapping[str, np.ndarray],
    *,
    stage: str,
    executor: Optional[Executor] = None,
) -> np.ndarray:
    # session.run blocks; keep the event loop free for other requests.
    loop = asyncio.get_running_loop()
    try:
        out = await loop.run_in_executor(executor, backend.infer, feeds)
    except Exception as e:
        raise InferenceError(f"{stage} inference failed: {e}") from e
    return np.asarray(out)


def _check_batch_of_one(out: np.ndarray, stage: str) -> None:
    if out.ndim != 3 or out.shape[0] != 1:
        raise InferenceError(f"{stage} returned shape {out.shape}; expected (1, N, K).")
    if not np.issubdtype(out.dtype, np.floating):
        raise InferenceError(f"{stage} returned dtype {out.dtype}; expected floating point.")


async def run_detector(
    backend: InferenceBackend,
    tensor: np.ndarray,
    io: ModelIO = ModelIO(),
    *,
    executor: Optional[Executor] = None,
) -> np.ndarray:
    """
    Run the detection model on a preprocessed (1, 3, H, W) blob.

    The raw candidate tensor is passed through untouched; only its rank and
    batch size are checked.
    """

    raw = await _call_backend(backend, {io.detector_input: tensor}, stage="Detector", executor=executor)
    _check_batch_of_one(raw, "Detector")
    return raw


async def run_suppression(
    backend: InferenceBackend,
    raw: np.ndarray,
    config: SuppressionConfig,
    io: ModelIO = ModelIO(),
    *,
    executor: Optional[Executor] = None,
) -> np.ndarray:
    """
    Run the NMS model on the detector output.

    IoU filtering and top-k truncation happen inside the model; this only
    packs the thresholds and validates the (1, N, 4 + C) result.
    """

    feeds = {
        io.suppression_detection: raw,
        io.suppression_config: config.as_tensor(),
    }
    selected = await _call_backend(backend, feeds, stage="Suppression", executor=executor)
    _check_batch_of_one(selected, "Suppression")
    if selected.shape[2] < 5:
        raise InferenceError(f"Suppression rows have {selected.shape[2]} values; need 4 box values plus scores.")
    if selected.shape[1] > config.top_k:
        raise InferenceError(f"Suppression returned {selected.shape[1]} rows, more than top_k={config.top_k}.")
    return selected
