"""
Container Gateway — Backend Client & Registry Lifecycle
=========================================================

What:  Shared httpx client, instance registry and asset handle, plus the
       FastAPI dependencies that hand them to route handlers.
How:   open_backends() builds everything on app.state during startup;
       close_backends() closes the client on shutdown. Routes never touch
       app.state directly, they depend on get_registry / get_asset_backend,
       which tests replace through app.dependency_overrides.
Who:   Called by the gateway lifespan; dependencies used by routes.
When:  Client and registry live for the whole process; resolved per request.

Connection Pooling:
    One AsyncClient per process, keep-alive connections reused across all
    instances and requests. Redirects are never followed; the caller sees
    the backend's 3xx as-is.
"""

import logging
from typing import Optional

import httpx
from fastapi import FastAPI, Request

from container_gateway.config import Settings
from container_gateway.services.backend_base import BackendHandle, InstanceRegistry
from container_gateway.services.instances import create_asset_backend, create_registry

logger = logging.getLogger(__name__)


def create_http_client(settings: Settings) -> httpx.AsyncClient:
    """
    What:  The client every HttpBackend forwards through.
    How:   forward_timeout bounds connect, read, write and pool waits alike.
    """
    return httpx.AsyncClient(
        timeout=httpx.Timeout(settings.forward_timeout),
        limits=httpx.Limits(max_keepalive_connections=20, max_connections=100),
        follow_redirects=False,
    )


async def open_backends(app: FastAPI, settings: Settings) -> None:
    """Create the shared client, the registry and the asset handle on app.state."""
    client = create_http_client(settings)
    app.state.http_client = client
    app.state.registry = create_registry(
        client,
        backend_urls=settings.backend_urls_list,
        max_instances=settings.max_instances,
    )
    app.state.asset_backend = create_asset_backend(client, settings.assets_origin)
    if app.state.asset_backend is None:
        logger.info("Static asset passthrough disabled (ASSETS_ORIGIN not set)")
    else:
        logger.info("Static assets served from %s", settings.assets_origin)


async def close_backends(app: FastAPI) -> None:
    """
    What:  Closes the shared client and its pooled connections.
    When:  Called during application shutdown (lifespan handler).
    """
    client: Optional[httpx.AsyncClient] = getattr(app.state, "http_client", None)
    if client is not None:
        await client.aclose()
        app.state.http_client = None


# ── Dependencies ──────────────────────────────────────────────────────────
def get_registry(request: Request) -> InstanceRegistry:
    """
    FastAPI dependency that provides the instance registry.

    Example usage in a route:
        @router.get("/x")
        async def x(registry: InstanceRegistry = Depends(get_registry)):
            handle = await registry.resolve_singleton()
    """
    return request.app.state.registry


def get_asset_backend(request: Request) -> Optional[BackendHandle]:
    """FastAPI dependency for the static-asset handle (None when disabled)."""
    return getattr(request.app.state, "asset_backend", None)
