from __future__ import annotations

import asyncio
import enum
import time
from concurrent.futures import Executor
from dataclasses import dataclass
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Tuple, Union

import numpy as np
import structlog

from .backends import InferenceBackend
from .decode import decode
from .errors import ModelNotReadyError
from .image_io import load_image
from .invoke import run_detector, run_suppression
from .letterbox import letterbox
from .types import Detection, ModelIO, PixelGrid, SuppressionConfig


PathLike = Union[str, Path]

logger = structlog.get_logger(__name__)


def find_project_root(
    start: Optional[PathLike] = None,
    markers: Sequence[str] = ("pyproject.toml", "setup.py", ".git", "requirements.txt"),
) -> Path:
    """
    Best-effort project root discovery, so `Models/...` resolves from anywhere in the repo.
    """

    p = Path(start) if start is not None else Path.cwd()
    p = p.resolve()

    # If a file is provided, start from its directory.
    if p.is_file():
        p = p.parent

    for parent in (p, *p.parents):
        for m in markers:
            if (parent / m).exists():
                return parent
    return p


def resolve_path(path: PathLike, root: Optional[PathLike] = "auto") -> Path:
    """
    Resolve `path` to an absolute Path.

    - Absolute paths are returned as-is.
    - Relative paths are resolved against `root` if provided, else the project root.
    """

    p = Path(path)
    if p.is_absolute():
        return p

    if root == "auto" or root is None:
        base = find_project_root()
    else:
        base = Path(root).resolve()

    return (base / p).resolve()


@dataclass(frozen=True)
class ModelHandles:
    detector: InferenceBackend
    suppressor: InferenceBackend


class ModelState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    FAILED = "failed"


class ModelRegistry:
    """
    Process-wide holder for the two model handles.

    Transitions once: UNINITIALIZED -> READY or UNINITIALIZED -> FAILED.
    After that it is read-only, so concurrent requests need no locking.
    """

    def __init__(self) -> None:
        self._state = ModelState.UNINITIALIZED
        self._handles: Optional[ModelHandles] = None
        self._error: Optional[str] = None

    @property
    def state(self) -> ModelState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._state is ModelState.READY

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def handles(self) -> ModelHandles:
        return self.require()

    def require(self) -> ModelHandles:
        """Return the handles, or raise `ModelNotReadyError`."""
        if self._state is ModelState.READY and self._handles is not None:
            return self._handles
        if self._state is ModelState.FAILED:
            raise ModelNotReadyError(f"Models failed to load: {self._error}")
        raise ModelNotReadyError("Models are not loaded yet.")

    def _check_unset(self) -> None:
        if self._state is not ModelState.UNINITIALIZED:
            raise RuntimeError(f"Model registry already initialised (state={self._state.value}).")

    def mark_ready(self, handles: ModelHandles) -> None:
        self._check_unset()
        self._handles = handles
        self._state = ModelState.READY

    def mark_failed(self, error: BaseException) -> None:
        self._check_unset()
        self._error = f"{type(error).__name__}: {error}"
        self._state = ModelState.FAILED


def load_models(
    detector_path: PathLike,
    suppressor_path: PathLike,
    *,
    root: Optional[PathLike] = "auto",
    providers: Optional[Sequence[str]] = None,
    io: ModelIO = ModelIO(),
) -> ModelHandles:
    """
    Open both ONNX models. Relative paths resolve against the project root.
    """

    from .backends.onnxruntime_backend import OnnxRuntimeBackend, OnnxRuntimeBackendConfig

    detector = OnnxRuntimeBackend(
        resolve_path(detector_path, root=root),
        OnnxRuntimeBackendConfig(providers=providers, output_name=io.detector_output),
    )
    suppressor = OnnxRuntimeBackend(
        resolve_path(suppressor_path, root=root),
        OnnxRuntimeBackendConfig(providers=providers, output_name=io.suppression_output),
    )
    return ModelHandles(detector=detector, suppressor=suppressor)


ModelLoader = Callable[[], Union[ModelHandles, Awaitable[ModelHandles]]]


class DetectionPipeline:
    """
    Orchestrates one request: letterbox -> detector -> NMS model -> decode.

    Model handles come from a `ModelRegistry` filled once by `startup`;
    until then every `detect` call fails fast with `ModelNotReadyError`.
    """

    def __init__(
        self,
        registry: Optional[ModelRegistry] = None,
        *,
        input_shape: Tuple[int, int, int, int] = (1, 3, 640, 640),
        suppression: SuppressionConfig = SuppressionConfig(),
        io: ModelIO = ModelIO(),
        executor: Optional[Executor] = None,
    ):
        if len(input_shape) != 4 or input_shape[0] != 1 or input_shape[1] != 3:
            raise ValueError(f"input_shape must be (1, 3, H, W), got {input_shape}")
        if input_shape[2] <= 0 or input_shape[3] <= 0:
            raise ValueError(f"input_shape spatial dims must be positive, got {input_shape}")

        self.registry = registry if registry is not None else ModelRegistry()
        self.input_shape = tuple(int(x) for x in input_shape)
        self.suppression = suppression
        self.io = io
        self._executor = executor

    @property
    def ready(self) -> bool:
        return self.registry.ready

    async def startup(self, loader: ModelLoader) -> bool:
        """
        Load both models once and run a warm-up pass on an all-zero tensor.

        Failures are logged and leave the pipeline not ready; they are not raised.
        """

        if self.registry.state is not ModelState.UNINITIALIZED:
            raise RuntimeError("DetectionPipeline.startup() may only run once.")

        try:
            logger.info("model_loading")
            handles = loader()
            if asyncio.iscoroutine(handles):
                handles = await handles
            logger.info("model_loaded")

            zeros = np.zeros(self.input_shape, dtype=np.float32)
            start = time.perf_counter()
            raw = await run_detector(handles.detector, zeros, self.io, executor=self._executor)
            await run_suppression(handles.suppressor, raw, self.suppression, self.io, executor=self._executor)
            logger.info("model_warmup_complete", warmup_ms=round((time.perf_counter() - start) * 1000.0, 2))
        except Exception as e:
            logger.error("model_load_failed", error=str(e), exc_info=True)
            self.registry.mark_failed(e)
            return False

        self.registry.mark_ready(handles)
        return True

    async def detect(self, image: bytes, config: Optional[SuppressionConfig] = None) -> List[Detection]:
        self.registry.require()
        loop = asyncio.get_running_loop()
        grid = await loop.run_in_executor(self._executor, load_image, image)
        return await self.detect_grid(grid, config)

    async def detect_grid(self, grid: PixelGrid, config: Optional[SuppressionConfig] = None) -> List[Detection]:
        handles = self.registry.handles
        cfg = config if config is not None else self.suppression

        loop = asyncio.get_running_loop()
        prep = await loop.run_in_executor(self._executor, letterbox, grid, self.input_shape)

        start = time.perf_counter()
        raw = await run_detector(handles.detector, prep.blob, self.io, executor=self._executor)
        selected = await run_suppression(handles.suppressor, raw, cfg, self.io, executor=self._executor)
        inference_ms = (time.perf_counter() - start) * 1000.0

        detections = decode(selected, prep.ratio)
        logger.info(
            "inference_complete",
            inference_ms=round(inference_ms, 2),
            detections=len(detections),
            image_width=prep.orig_size[0],
            image_height=prep.orig_size[1],
        )
        return detections
