"""
FastAPI application for image upload detection.

Routes:
- GET  /              -> liveness text
- GET  /health        -> model readiness
- POST /upload-image  -> multipart `image` field, returns detections
"""

from __future__ import annotations

import asyncio
from concurrent.futures import ThreadPoolExecutor
from contextlib import asynccontextmanager
from dataclasses import replace
from typing import Optional

from fastapi import FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from yolo_nms.errors import DetectionError, InferenceError, InvalidInputError, ModelNotReadyError
from yolo_nms.runtime import DetectionPipeline, ModelHandles, ModelLoader, load_models

from .config import ServiceConfig
from .logging import get_logger
from .schemas import DetectionOut, DetectResponse, ErrorResponse, HealthResponse


logger = get_logger(__name__)


class UploadTooLargeError(InvalidInputError):
    pass


# First match wins, so subclasses come before their bases.
_STATUS_BY_ERROR = (
    (UploadTooLargeError, 413),
    (InvalidInputError, 400),
    (ModelNotReadyError, 503),
    (InferenceError, 500),
)


def default_loader(config: ServiceConfig) -> ModelLoader:
    async def _load() -> ModelHandles:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None,
            lambda: load_models(
                config.model_path,
                config.nms_model_path,
                providers=config.onnx_providers,
            ),
        )

    return _load


def _pipeline(request: Request) -> DetectionPipeline:
    return request.app.state.pipeline


def create_app(config: ServiceConfig = ServiceConfig(), loader: Optional[ModelLoader] = None) -> FastAPI:
    """Create the FastAPI app; `loader` overrides ONNX model loading (used by tests)."""

    model_loader = loader if loader is not None else default_loader(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        executor = ThreadPoolExecutor(thread_name_prefix="detect-worker-")
        app.state.pipeline = DetectionPipeline(
            input_shape=config.input_shape,
            suppression=config.suppression_config(),
            executor=executor,
        )
        # Runs before the server accepts requests.
        ready = await app.state.pipeline.startup(model_loader)
        logger.info("service_ready" if ready else "service_not_ready", model_path=config.model_path)

        yield

        executor.shutdown(wait=True)
        logger.info("executor_shutdown")

    app = FastAPI(
        title="Image Detection Server",
        version="1.0.0",
        description="YOLO detector + NMS model over uploaded images",
        lifespan=lifespan,
    )
    app.state.config = config

    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DetectionError)
    async def _detection_error(request: Request, exc: DetectionError) -> JSONResponse:
        status = next((code for err_type, code in _STATUS_BY_ERROR if isinstance(exc, err_type)), 500)
        logger.warning("request_failed", path=request.url.path, status=status, error=str(exc))
        return JSONResponse(status_code=status, content=ErrorResponse(error=str(exc)).model_dump())

    @app.get("/", response_class=PlainTextResponse)
    async def root() -> str:
        return "Success connected"

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request):
        pipeline = _pipeline(request)
        body = HealthResponse(
            status="ready" if pipeline.ready else "not_ready",
            models=pipeline.registry.state.value,
            error=pipeline.registry.error,
        )
        return JSONResponse(status_code=200 if pipeline.ready else 503, content=body.model_dump())

    @app.post(
        "/upload-image",
        response_model=DetectResponse,
        responses={400: {"model": ErrorResponse}, 413: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    )
    async def upload_image(
        request: Request,
        image: UploadFile = File(..., description="Image file (JPEG/PNG)"),
        topk: Optional[int] = Query(None, ge=1, description="Override max detections"),
        iou_threshold: Optional[float] = Query(None, ge=0.0, le=1.0, description="Override NMS IoU threshold"),
        score_threshold: Optional[float] = Query(None, ge=0.0, le=1.0, description="Override score threshold"),
    ) -> DetectResponse:
        pipeline = _pipeline(request)
        # Never buffer more than one byte past the limit.
        data = await image.read(config.max_upload_bytes + 1)
        if len(data) > config.max_upload_bytes:
            raise UploadTooLargeError(f"Upload exceeds {config.max_upload_mb} MB")

        cfg = pipeline.suppression
        overrides = {
            k: v
            for k, v in (("top_k", topk), ("iou_threshold", iou_threshold), ("score_threshold", score_threshold))
            if v is not None
        }
        if overrides:
            cfg = replace(cfg, **overrides)

        detections = await pipeline.detect(data, cfg)
        return DetectResponse(detections=[DetectionOut.from_detection(d) for d in detections])

    return app
