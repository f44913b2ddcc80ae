"""
Container Gateway — Placeholder Container Application
=======================================================

What:  The FastAPI app a backend instance runs (listens on 8080 by default).
How:   Same logging and middleware as the gateway; routes from routes/worker.py.
Who:   Started inside each container: uvicorn container_gateway.worker:app --port 8080
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from container_gateway import __version__
from container_gateway.main import add_common_middleware, setup_logging
from container_gateway.routes import worker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("Container successfully started")
    try:
        yield
    except Exception:
        logger.exception("Container error")
        raise
    finally:
        logger.info("Container successfully shut down")


def create_worker_app() -> FastAPI:
    app = FastAPI(
        title="Commerce Container API",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan,
    )
    add_common_middleware(app)
    app.include_router(worker.router)
    return app


app = create_worker_app()
