"""
Container Gateway — Prefixed Container Routes
===============================================

What:  Handles every method on <prefix> and <prefix>/{path} (default
       /api/container) by forwarding to a session-affine backend instance.
How:   Builds a resolver from the configured selection policy, hands the
       request to ContainerRouter, and translates a ForwardFailure into the
       fixed JSON 500 response.
Who:   Public edge traffic (e.g. GET /api/container/health).

Request Flow:
    1. Routing key from ?session=, x-session-id, or "default"
    2. Prefix removed: /api/container/health → /health, /api/container → /
    3. Instance resolved with the configured policy
    4. Backend response streamed back unchanged
    5. On failure: {"error": "Container request failed", "message": "..."} (500)
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from starlette.responses import Response

from container_gateway.backends import get_registry
from container_gateway.config import settings
from container_gateway.schemas.gateway import ContainerErrorResponse
from container_gateway.services.backend_base import InstanceRegistry
from container_gateway.services.forwarding import (
    ContainerRouter,
    ForwardFailure,
    ForwardResult,
)
from container_gateway.services.instances import build_resolver

logger = logging.getLogger(__name__)

# Methods accepted on forwarded paths
FORWARD_METHODS = ["GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"]

router = APIRouter(tags=["Container"])

container_router = ContainerRouter.from_settings(settings)


def result_to_response(result: ForwardResult) -> Response:
    """Return the backend response, or the JSON 500 for a failure."""
    if isinstance(result, ForwardFailure):
        return JSONResponse(status_code=500, content=result.as_dict())
    return result.response


@router.api_route(
    settings.route_prefix,
    methods=FORWARD_METHODS,
    responses={500: {"description": "Container request failed", "model": ContainerErrorResponse}},
    summary="Forward to the container root",
)
@router.api_route(
    settings.route_prefix + "/{path:path}",
    methods=FORWARD_METHODS,
    responses={500: {"description": "Container request failed", "model": ContainerErrorResponse}},
    summary="Forward to a container path",
)
async def forward_to_container(
    request: Request,
    registry: InstanceRegistry = Depends(get_registry),
) -> Response:
    """
    Forward the request to the instance selected for its routing key.

    Error responses:
        HTTP 500: Instance resolution or forwarding failed
    """
    resolver = build_resolver(
        registry, settings.selection_policy, settings.random_pool_size
    )
    result = await container_router.route(request, resolver)
    return result_to_response(result)
