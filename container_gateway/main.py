"""
Container Gateway — FastAPI Application Factory
=================================================

What:  Creates and configures the edge gateway and the internal dispatch app.
How:   Factory pattern: create_app() / create_dispatch_app() return configured
       FastAPI instances sharing logging, middleware and exception handlers.
Who:   Called by uvicorn (uvicorn container_gateway.main:app).
When:  Once at server startup; the returned app handles all requests.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │                 Edge Gateway App                    │
    │                                                     │
    │  Middleware Chain:                                  │
    │  ┌──────────┐ ┌─────────────────┐                   │
    │  │  Req ID  │→│  Logging        │                   │
    │  └──────────┘ └─────────────────┘                   │
    │                                                     │
    │  Routes (first match wins):                         │
    │  ┌──────────────────┐ ┌──────────────┐ ┌─────────┐  │
    │  │ /_gateway/health │→│ <prefix>/... │→│ assets  │  │
    │  └──────────────────┘ └──────────────┘ └─────────┘  │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ Validation→400 │ NotFound→404 │ Forward→502  │   │
    │  │ Unavailable→503 │ anything else→500          │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  logging → config check → shared httpx client + registry
    Shutdown: close the httpx client
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from container_gateway import __version__
from container_gateway.backends import close_backends, open_backends
from container_gateway.config import settings
from container_gateway.exceptions import (
    BackendUnavailableError,
    ForwardingError,
    GatewayError,
    NotFoundError,
    ValidationError,
)
from container_gateway.middleware.logging import RequestLoggingMiddleware
from container_gateway.middleware.request_id import RequestIDMiddleware, request_id_var
from container_gateway.routes import assets, container, dispatch, health
from container_gateway.schemas.gateway import ErrorResponse

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole process.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s
    Called once at the start of each app's lifespan.
    """
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
        force=True,
    )

    # Per-request noise from the server and the HTTP client
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan (Startup & Shutdown)
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Startup sequence:
        1. Setup logging
        2. Validate the backend pool configuration
        3. Open the shared client, registry and asset handle

    Shutdown sequence:
        1. Close the shared client (drops pooled connections)
    """
    # ── Startup ───────────────────────────────────────────────────────────
    setup_logging()
    logger.info("=" * 60)
    logger.info("%s starting up...", app.title)

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: container requests will answer 500 until fixed
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    await open_backends(app, settings)

    logger.info(
        "Routing %s/* with policy '%s' across %d backend(s)",
        settings.route_prefix,
        settings.selection_policy,
        len(settings.backend_urls_list),
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    logger.info("%s shutting down...", app.title)
    await close_backends(app)
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map exception types to HTTP status codes and the error envelope.

    Container routes never reach these for resolution or forwarding failures:
    the router already turned those into its own 500 response. These cover
    the asset passthrough and anything unexpected.

    Handler hierarchy:
        ValidationError          → 400 Bad Request
        NotFoundError            → 404 Not Found
        ForwardingError          → 502 Bad Gateway
        BackendUnavailableError  → 503 Service Unavailable
        GatewayError (base)      → 500 Internal Server Error
        Exception (fallback)     → 500 Internal Server Error
    """

    def envelope(status_code: int, error: str, exc: GatewayError, details: bool = False):
        body = ErrorResponse(
            error=error,
            message=exc.message,
            details=exc.context if details else None,
            request_id=request_id_var.get(""),
        )
        return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return envelope(400, "validation_error", exc, details=True)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return envelope(404, "not_found", exc)

    @app.exception_handler(ForwardingError)
    async def handle_forwarding_error(request: Request, exc: ForwardingError):
        logger.error(
            "[%s] Forwarding error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return envelope(502, "bad_gateway", exc)

    @app.exception_handler(BackendUnavailableError)
    async def handle_backend_unavailable(request: Request, exc: BackendUnavailableError):
        logger.error("[%s] Backend unavailable: %s", request_id_var.get(""), exc.message)
        return envelope(503, "service_unavailable", exc)

    @app.exception_handler(GatewayError)
    async def handle_gateway_error(request: Request, exc: GatewayError):
        logger.error(
            "[%s] Gateway error: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return envelope(500, "server_error", exc)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Stack trace is logged server-side only, never returned."""
        rid = request_id_var.get("")
        logger.error("[%s] Unexpected error: %s", rid, str(exc), exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": "internal_server_error",
                "message": "An unexpected error occurred.",
                "request_id": rid,
            },
        )


def add_common_middleware(app: FastAPI) -> None:
    """
    Middleware executes in REVERSE order of addition:
    RequestID runs first, then Logging.
    """
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)


# ══════════════════════════════════════════════════════════════════════════
# Application Factories
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """
    Create the edge gateway.

    Docs are served under /_gateway so the catch-all asset route keeps every
    other path.
    """
    app = FastAPI(
        title="Container Gateway",
        description=(
            "Forwards requests under the container prefix to session-affine "
            "backend instances and passes everything else to the asset origin."
        ),
        version=__version__,
        docs_url="/_gateway/docs",
        redoc_url=None,
        openapi_url="/_gateway/openapi.json",
        lifespan=lifespan,
    )

    add_common_middleware(app)
    register_exception_handlers(app)

    # Order matters: the asset catch-all must be last
    app.include_router(health.router)
    app.include_router(container.router)
    app.include_router(assets.router)

    return app


def create_dispatch_app() -> FastAPI:
    """Create the internal entry point that exposes each selection policy by path."""
    app = FastAPI(
        title="Container Dispatch",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )

    add_common_middleware(app)
    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(dispatch.router)

    return app


# ── Application Instances ────────────────────────────────────────────────
app = create_app()
dispatch_app = create_dispatch_app()
