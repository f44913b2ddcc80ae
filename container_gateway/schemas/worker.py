"""
Container Gateway — Worker Request/Response Schemas
=====================================================

What:  Pydantic models for the placeholder container application.
How:   Request bodies are validated with model_validate_json(); a failure is
       answered locally with a 400. Field names follow the JSON wire format
       (camelCase), so no aliases are needed.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class ImageRequest(BaseModel):
    """Body of POST /process-image. Unknown keys are kept and echoed back."""
    imageUrl: Optional[str] = None
    operations: Optional[List[str]] = None

    model_config = {"extra": "allow"}


class PdfRequest(BaseModel):
    """Body of POST /generate-pdf."""
    template: Optional[str] = None
    data: Optional[Dict[str, Any]] = None


class ComputationRequest(BaseModel):
    """Body of POST /heavy-computation."""
    task: Optional[str] = None
    params: Optional[Dict[str, Any]] = None


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class WorkerHealthResponse(BaseModel):
    status: str = Field(default="healthy")
    timestamp: str = Field(description="UTC ISO 8601 timestamp")
    uptime: float = Field(description="Seconds since the worker process started")


class ImageResult(BaseModel):
    processedAt: str
    operations: List[str]


class ImageResponse(BaseModel):
    success: bool = True
    message: str = "Image processing completed"
    input: Dict[str, Any]
    result: ImageResult


class PdfResult(BaseModel):
    generatedAt: str
    template: str
    pageCount: int = 1


class PdfResponse(BaseModel):
    success: bool = True
    message: str = "PDF generation completed"
    result: PdfResult


class ComputationResult(BaseModel):
    completedAt: str
    durationMs: int
    task: str


class ComputationResponse(BaseModel):
    success: bool = True
    message: str = "Computation completed"
    result: ComputationResult


class WorkerErrorResponse(BaseModel):
    error: str


class EndpointInfo(BaseModel):
    path: str
    method: str
    description: str


class WorkerIndexResponse(BaseModel):
    message: str = "Commerce Container API"
    version: str
    endpoints: List[EndpointInfo]
