"""
Container Gateway — Instance Selector
=======================================

What:  Maps routing keys to live backend handles over a pool of HTTP backends.
How:   PooledInstanceRegistry places each instance name on one backend base
       URL with rendezvous hashing and keeps one HttpBackend handle per name.
       build_resolver() turns a configured policy into the callable the
       router uses for a single request.
Who:   Created in the gateway lifespan; injected into routes via get_registry.
When:  Once per forwarded request (resolution), handles reused across requests.

Placement:
    score(url, name) = sha256("<url>|<name>")  →  pick the URL with the highest score

    The same name always lands on the same URL for a given pool, and growing
    the pool only moves the names that the new URL wins.
"""

import hashlib
import logging
import random
from typing import Awaitable, Callable, Dict, List, Optional

import httpx
from starlette.background import BackgroundTask
from starlette.responses import Response, StreamingResponse

from container_gateway.exceptions import BackendUnavailableError, ForwardingError
from container_gateway.services.backend_base import (
    BackendHandle,
    ForwardRequest,
    InstanceRegistry,
    relayable_headers,
)

logger = logging.getLogger(__name__)

# Callable that resolves a handle for one routing key
Resolver = Callable[[str], Awaitable[BackendHandle]]


class HttpBackend(BackendHandle):
    """
    Backend handle that forwards over HTTP with a shared httpx client.

    The response is relayed as a stream: status and headers are returned as
    soon as the backend sends them, and the body bytes are passed through
    undecoded. The upstream response is closed once the relay finishes.
    """

    def __init__(self, name: str, base_url: str, client: httpx.AsyncClient):
        self.name = name
        self.base_url = base_url.rstrip("/")
        self.client = client

    def __repr__(self) -> str:
        return f"HttpBackend(name={self.name!r}, base_url={self.base_url!r})"

    async def fetch(self, request: ForwardRequest) -> Response:
        upstream_request = self.client.build_request(
            request.method,
            f"{self.base_url}{request.target}",
            headers=relayable_headers(request.headers, drop_host=True),
            content=request.body,
        )
        try:
            upstream = await self.client.send(upstream_request, stream=True)
        except httpx.HTTPError as exc:
            raise ForwardingError(
                message=str(exc) or type(exc).__name__,
                backend=self.name,
                context={"base_url": self.base_url, "target": request.target},
            ) from exc

        logger.debug(
            "Backend %s answered %s %s with %d",
            self.name,
            request.method,
            request.target,
            upstream.status_code,
        )

        if upstream.is_stream_consumed:
            # Transports may hand back a response that was already read
            response = Response(upstream.content, status_code=upstream.status_code)
            await upstream.aclose()
        else:
            response = StreamingResponse(
                upstream.aiter_raw(),
                status_code=upstream.status_code,
                background=BackgroundTask(upstream.aclose),
            )
        # Replace Starlette's defaults so repeated headers (set-cookie) survive
        response.raw_headers = [
            (name.encode("latin-1"), value.encode("latin-1"))
            for name, value in relayable_headers(upstream.headers.multi_items())
        ]
        return response


class PooledInstanceRegistry(InstanceRegistry):
    """
    Registry of named instances placed on a fixed pool of backend URLs.

    Handles are created on first resolution and kept for the lifetime of the
    registry, so resolving the same name twice yields the same handle.
    Instance lifecycle (sleep, restart) is owned by whatever runs behind the
    backend URLs, not by this class.
    """

    def __init__(
        self,
        backend_urls: List[str],
        client: httpx.AsyncClient,
        max_instances: int = 1000,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(rng=rng)
        self.backend_urls = [url.rstrip("/") for url in backend_urls]
        self.client = client
        self.max_instances = max_instances
        self._handles: Dict[str, HttpBackend] = {}

    @property
    def live_instances(self) -> int:
        return len(self._handles)

    def place(self, name: str) -> str:
        """Pick the backend URL that hosts instance `name`."""
        if not self.backend_urls:
            raise BackendUnavailableError(
                "No backend instances are registered", instance=name
            )
        return max(
            self.backend_urls,
            key=lambda url: hashlib.sha256(f"{url}|{name}".encode("utf-8")).digest(),
        )

    async def resolve_by_name(self, name: str) -> BackendHandle:
        handle = self._handles.get(name)
        if handle is not None:
            return handle

        if len(self._handles) >= self.max_instances:
            raise BackendUnavailableError(
                f"Instance capacity exhausted ({self.max_instances} instances live)",
                instance=name,
                context={"max_instances": self.max_instances},
            )

        handle = HttpBackend(name, self.place(name), self.client)
        self._handles[name] = handle
        logger.info("Registered instance %s on %s", name, handle.base_url)
        return handle


def build_resolver(
    registry: InstanceRegistry,
    policy: str,
    pool_size: int = 5,
) -> Resolver:
    """
    Bind a selection policy to a registry.

    Args:
        registry:  Capability that produces handles.
        policy:    "by_name" (session affinity), "singleton" or "random".
        pool_size: Upper bound N for the random policy.

    Returns:
        An async callable taking the routing key and returning a handle.
    """
    if policy == "by_name":
        return registry.resolve_by_name
    if policy == "singleton":

        async def resolve_singleton(_key: str) -> BackendHandle:
            return await registry.resolve_singleton()

        return resolve_singleton
    if policy == "random":

        async def resolve_random(_key: str) -> BackendHandle:
            return await registry.resolve_random(pool_size)

        return resolve_random
    raise ValueError(f"Unknown selection policy '{policy}'")


def named_resolver(registry: InstanceRegistry, name: str) -> Resolver:
    """Resolver that always picks the instance called `name`."""

    async def resolve_named(_key: str) -> BackendHandle:
        return await registry.resolve_by_name(name)

    return resolve_named


def create_registry(
    client: httpx.AsyncClient,
    backend_urls: List[str],
    max_instances: int,
) -> PooledInstanceRegistry:
    """Build the pooled registry the gateway runs with."""
    registry = PooledInstanceRegistry(
        backend_urls=backend_urls,
        client=client,
        max_instances=max_instances,
    )
    logger.info(
        "Instance registry ready: %d backend(s), capacity %d",
        len(registry.backend_urls),
        max_instances,
    )
    return registry


def create_asset_backend(
    client: httpx.AsyncClient, assets_origin: str
) -> Optional[HttpBackend]:
    """Handle for the static-asset origin, or None when passthrough is disabled."""
    if not assets_origin:
        return None
    return HttpBackend("assets", assets_origin, client)
