"""
Container Gateway — Health Check Route
========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Reports configuration and registry occupancy. It does not probe the
       backends: their health is reachable through the container prefix
       itself (e.g. GET /api/container/health).
Who:   Called by Docker health checks, load balancers, and monitoring systems.

The route lives under /_gateway so it never shadows a path that belongs to
the static-asset origin or to a container.

Status levels:
    - healthy:   At least one backend URL configured
    - degraded:  No backend configured (every container request will fail)
"""

import time

from fastapi import APIRouter, Depends

from container_gateway import __version__
from container_gateway.backends import get_registry
from container_gateway.config import settings
from container_gateway.schemas.gateway import HealthResponse
from container_gateway.services.backend_base import InstanceRegistry

router = APIRouter(prefix="/_gateway", tags=["Health"])

# Track when the service started for uptime reporting
_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Gateway health check",
)
async def health_check(
    registry: InstanceRegistry = Depends(get_registry),
) -> HealthResponse:
    backends = len(settings.backend_urls_list)
    return HealthResponse(
        status="healthy" if backends else "degraded",
        version=__version__,
        selection_policy=settings.selection_policy,
        route_prefix=settings.route_prefix,
        backends=backends,
        live_instances=registry.live_instances,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
