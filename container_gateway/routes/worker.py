"""
Container Gateway — Placeholder Container Handlers
====================================================

What:  The application that runs inside a backend instance: a health probe
       and three placeholder resource-intensive handlers.
How:   Each handler validates its JSON body with a Pydantic model; a body
       that fails to parse is answered here with a 400 and never reaches the
       gateway's error path. Anything unmatched returns the endpoint index.
Who:   Mounted on the worker app (container_gateway.worker:app), reached
       through the gateway as e.g. POST /api/container/process-image.

The handlers do no real work. They mark where image processing, PDF
rendering and CPU-bound jobs plug in.
"""

import logging
import math
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from container_gateway import __version__
from container_gateway.config import settings
from container_gateway.schemas.worker import (
    ComputationRequest,
    ComputationResponse,
    ComputationResult,
    EndpointInfo,
    ImageRequest,
    ImageResponse,
    ImageResult,
    PdfRequest,
    PdfResponse,
    PdfResult,
    WorkerErrorResponse,
    WorkerHealthResponse,
    WorkerIndexResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Worker"])

# Process start, for the uptime field of /health
_start_time = time.monotonic()

ENDPOINTS = [
    EndpointInfo(path="/health", method="GET", description="Health check"),
    EndpointInfo(path="/process-image", method="POST", description="Process and optimize images"),
    EndpointInfo(path="/generate-pdf", method="POST", description="Generate PDF documents"),
    EndpointInfo(
        path="/heavy-computation",
        method="POST",
        description="Run resource-intensive computations",
    ),
]

# /health and the index answer on any method
ALL_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

BAD_REQUEST = {400: {"description": "Malformed request body", "model": WorkerErrorResponse}}


def utc_timestamp() -> str:
    """Current UTC time as ISO 8601 with millisecond precision, e.g. 2024-01-15T12:00:00.000Z."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _bad_request(reason: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": reason})


def simulate_computation(iterations: int) -> float:
    """CPU-bound stand-in: sum of square roots of 0..iterations-1."""
    total = 0.0
    for i in range(iterations):
        total += math.sqrt(i)
    return total


@router.api_route(
    "/health",
    methods=ALL_METHODS,
    response_model=WorkerHealthResponse,
    summary="Worker health check",
)
async def worker_health() -> WorkerHealthResponse:
    return WorkerHealthResponse(
        status="healthy",
        timestamp=utc_timestamp(),
        uptime=round(time.monotonic() - _start_time, 3),
    )


@router.post("/process-image", response_model=ImageResponse, responses=BAD_REQUEST)
async def process_image(request: Request):
    """
    Placeholder image pipeline.

    A real implementation would fetch `imageUrl`, apply the operations
    (resize, compress, convert) and return the result or a URL to it.
    """
    try:
        body = ImageRequest.model_validate_json(await request.body())
    except PydanticValidationError as e:
        logger.warning("Rejected /process-image body: %s", e.error_count())
        return _bad_request("Failed to process image")

    operations = body.operations if body.operations is not None else ["optimize"]
    return ImageResponse(
        input=body.model_dump(exclude_unset=True),
        result=ImageResult(processedAt=utc_timestamp(), operations=operations),
    )


@router.post("/generate-pdf", response_model=PdfResponse, responses=BAD_REQUEST)
async def generate_pdf(request: Request):
    """Placeholder PDF rendering from `template` and `data`."""
    try:
        body = PdfRequest.model_validate_json(await request.body())
    except PydanticValidationError as e:
        logger.warning("Rejected /generate-pdf body: %s", e.error_count())
        return _bad_request("Failed to generate PDF")

    return PdfResponse(
        result=PdfResult(
            generatedAt=utc_timestamp(),
            template=body.template or "default",
            pageCount=1,
        ),
    )


@router.post("/heavy-computation", response_model=ComputationResponse, responses=BAD_REQUEST)
async def heavy_computation(request: Request):
    """
    Placeholder CPU-bound job.

    The loop runs in the threadpool so the event loop keeps serving other
    requests while it runs.
    """
    try:
        body = ComputationRequest.model_validate_json(await request.body())
    except PydanticValidationError as e:
        logger.warning("Rejected /heavy-computation body: %s", e.error_count())
        return _bad_request("Failed to complete computation")

    started = time.perf_counter()
    await run_in_threadpool(simulate_computation, settings.computation_iterations)
    duration_ms = int((time.perf_counter() - started) * 1000)

    return ComputationResponse(
        result=ComputationResult(
            completedAt=utc_timestamp(),
            durationMs=duration_ms,
            task=body.task or "default",
        ),
    )


@router.api_route(
    "/{path:path}",
    methods=ALL_METHODS,
    response_model=WorkerIndexResponse,
    include_in_schema=False,
)
async def worker_index() -> WorkerIndexResponse:
    return WorkerIndexResponse(version=__version__, endpoints=ENDPOINTS)
