from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

from yolo_nms.types import Detection


class DetectionOut(BaseModel):
    label: int = Field(..., ge=0, description="Class index with the highest score")
    probability: float = Field(..., description="Score of that class")
    bounding: List[float] = Field(
        ...,
        min_length=4,
        max_length=4,
        description="[x, y, width, height]: model-input pixels scaled by max(W, H) / W and max(W, H) / H",
    )

    @classmethod
    def from_detection(cls, det: Detection) -> "DetectionOut":
        return cls(label=det.label, probability=det.probability, bounding=list(det.bounding))


class DetectResponse(BaseModel):
    detections: List[DetectionOut]


class HealthResponse(BaseModel):
    status: str
    models: str
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    error: str
