"""
Container Gateway — Policy Dispatch Routes
============================================

What:  Internal entry point that exposes each selection policy on its own path.
How:   Paths arrive unprefixed and are forwarded unchanged; only the instance
       selection differs per path.
Who:   Mounted on the dispatch app (container_gateway.main:dispatch_app).

Path → Policy:
    /              → plain-text endpoint list (not forwarded)
    /app, /app...  → by-name instance "app"
    /lb            → random-of-3
    /singleton     → singleton
    anything else  → singleton
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse
from starlette.responses import Response

from container_gateway.backends import get_registry
from container_gateway.config import settings
from container_gateway.routes.container import FORWARD_METHODS, result_to_response
from container_gateway.services.backend_base import InstanceRegistry
from container_gateway.services.forwarding import ContainerRouter
from container_gateway.services.instances import Resolver, build_resolver, named_resolver

# Instance name for everything under /app
APP_INSTANCE = "app"

# Pool bound of the /lb endpoint
LOAD_BALANCE_POOL_SIZE = 3

INDEX_TEXT = (
    "Available endpoints:\n"
    "GET /app - Route to the commerce app container\n"
    "GET /lb - Load balance across multiple container instances\n"
    "GET /singleton - Get a single container instance"
)

router = APIRouter(tags=["Dispatch"])

dispatch_router = ContainerRouter.from_settings(settings, prefix="")


def resolver_for_path(path: str, registry: InstanceRegistry) -> Resolver:
    """Pick the selection policy for an unprefixed path."""
    if path.startswith("/app"):
        return named_resolver(registry, APP_INSTANCE)
    if path == "/lb":
        return build_resolver(registry, "random", LOAD_BALANCE_POOL_SIZE)
    return build_resolver(registry, "singleton")


@router.api_route("/{path:path}", methods=FORWARD_METHODS, include_in_schema=False)
async def dispatch(
    request: Request,
    registry: InstanceRegistry = Depends(get_registry),
) -> Response:
    path = request.url.path
    if path == "/":
        return PlainTextResponse(INDEX_TEXT)
    result = await dispatch_router.route(request, resolver_for_path(path, registry))
    return result_to_response(result)
