"""
Container Gateway — Static Asset Passthrough
==============================================

What:  Catch-all for every path that is not under the container prefix.
How:   Forwards the request untouched (method, path, query, headers, body)
       to the configured asset origin and returns its response as-is.
Who:   Registered last on the edge app so every other route wins first.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from container_gateway.backends import get_asset_backend
from container_gateway.exceptions import NotFoundError
from container_gateway.routes.container import FORWARD_METHODS
from container_gateway.schemas.gateway import ErrorResponse
from container_gateway.services.backend_base import BackendHandle
from container_gateway.services.forwarding import (
    build_forward_request,
    mark_forwarded,
    request_path,
)

router = APIRouter(tags=["Assets"])


@router.api_route(
    "/{path:path}",
    methods=FORWARD_METHODS,
    include_in_schema=False,
    responses={
        404: {"description": "No asset origin configured", "model": ErrorResponse},
        502: {"description": "Asset origin unreachable", "model": ErrorResponse},
    },
)
async def passthrough_to_assets(
    request: Request,
    assets: Optional[BackendHandle] = Depends(get_asset_backend),
) -> Response:
    """
    Error responses (handled by global exception handlers):
        HTTP 404: No asset origin configured (NotFoundError)
        HTTP 502: Asset origin unreachable (ForwardingError)
    """
    if assets is None:
        raise NotFoundError("path", request.url.path)
    response = await assets.fetch(build_forward_request(request, request_path(request)))
    mark_forwarded(request)
    return response
