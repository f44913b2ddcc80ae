"""
Container Gateway — Test Configuration (conftest.py)
======================================================

What:  Shared pytest fixtures for the entire test suite.
How:   pytest auto-discovers conftest.py and makes fixtures available to all tests.

Fixture Hierarchy:
    Function-scoped (created fresh for each test):
    ├── fake_registry: FakeRegistry recording every resolution
    ├── gateway_app / gateway_client: edge app with the fake registry injected
    ├── dispatch_client: dispatch app with the fake registry injected
    ├── worker_client: placeholder container app
    └── integrated_client: edge app → PooledInstanceRegistry → worker app
"""

import os
import random

# Override settings for testing BEFORE any app imports
os.environ["BACKEND_URLS"] = "http://worker-a:8080,http://worker-b:8080"
os.environ["ROUTE_PREFIX"] = "/api/container"
os.environ["SELECTION_POLICY"] = "by_name"
os.environ["COMPUTATION_ITERATIONS"] = "1000"
os.environ["LOG_LEVEL"] = "WARNING"

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from container_gateway.backends import get_asset_backend, get_registry
from container_gateway.services.instances import PooledInstanceRegistry
from tests.fakes import FakeRegistry


@pytest.fixture
def fake_registry():
    return FakeRegistry()


@pytest.fixture
def gateway_app(fake_registry):
    """Fresh edge app with the fake registry injected and no asset origin."""
    from container_gateway.main import create_app

    app = create_app()
    app.dependency_overrides[get_registry] = lambda: fake_registry
    app.dependency_overrides[get_asset_backend] = lambda: None
    return app


@pytest_asyncio.fixture
async def gateway_client(gateway_app):
    """
    HTTPX AsyncClient talking to the edge app in-process.

    Usage:
        async def test_health(gateway_client):
            response = await gateway_client.get("/_gateway/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=gateway_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def dispatch_client(fake_registry):
    from container_gateway.main import create_dispatch_app

    app = create_dispatch_app()
    app.dependency_overrides[get_registry] = lambda: fake_registry
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest_asyncio.fixture
async def worker_client():
    from container_gateway.worker import create_worker_app

    transport = ASGITransport(app=create_worker_app())
    async with AsyncClient(transport=transport, base_url="http://container") as client:
        yield client


@pytest_asyncio.fixture
async def worker_http_client():
    """httpx client whose every request lands on the worker app in-process."""
    from container_gateway.worker import create_worker_app

    transport = ASGITransport(app=create_worker_app())
    async with httpx.AsyncClient(transport=transport) as client:
        yield client


@pytest.fixture
def pooled_registry(worker_http_client):
    return PooledInstanceRegistry(
        backend_urls=["http://worker-a:8080", "http://worker-b:8080"],
        client=worker_http_client,
        max_instances=10,
        rng=random.Random(7),
    )


@pytest_asyncio.fixture
async def integrated_client(pooled_registry):
    """Edge app forwarding through real HttpBackend handles to the worker app."""
    from container_gateway.main import create_app

    app = create_app()
    app.dependency_overrides[get_registry] = lambda: pooled_registry
    app.dependency_overrides[get_asset_backend] = lambda: None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
