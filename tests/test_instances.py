"""
Container Gateway — Instance Selector Unit Tests
==================================================

What:  Tests for the three selection policies, the pooled registry and the
       HttpBackend forward.
How:   httpx.MockTransport stands in for the network; no sockets are opened.

What we test:
    ✅ By-name resolution is idempotent
    ✅ Singleton ignores the routing key
    ✅ Random-of-N stays within N (N=1 always the same instance)
    ✅ Placement is deterministic and spreads names over the pool
    ✅ Capacity exhaustion and empty pools raise BackendUnavailableError
    ✅ HttpBackend relays status, headers and body; network errors raise ForwardingError
"""

import random

import httpx
import pytest

from container_gateway.exceptions import (
    BackendUnavailableError,
    ForwardingError,
    ValidationError,
)
from container_gateway.services.backend_base import SINGLETON_INSTANCE, ForwardRequest
from container_gateway.services.instances import (
    HttpBackend,
    PooledInstanceRegistry,
    build_resolver,
    create_asset_backend,
    named_resolver,
)
from tests.fakes import FakeRegistry

POOL = ["http://backend-1:8080", "http://backend-2:8080", "http://backend-3:8080"]


def make_registry(max_instances=100, seed=0, urls=POOL):
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(204)))
    return PooledInstanceRegistry(
        backend_urls=urls,
        client=client,
        max_instances=max_instances,
        rng=random.Random(seed),
    )


class TestPooledRegistry:

    @pytest.mark.asyncio
    async def test_same_key_same_handle(self):
        registry = make_registry()
        first = await registry.resolve_by_name("abc123")
        second = await registry.resolve_by_name("abc123")
        assert first is second
        assert registry.live_instances == 1

    @pytest.mark.asyncio
    async def test_placement_is_deterministic_across_registries(self):
        a, b = make_registry(), make_registry()
        for key in ["s1", "s2", "tenant-9", "default"]:
            assert (await a.resolve_by_name(key)).base_url == (await b.resolve_by_name(key)).base_url

    def test_placement_spreads_over_pool(self):
        registry = make_registry()
        placed = {registry.place(f"session-{i}") for i in range(60)}
        assert len(placed) > 1
        assert placed <= set(POOL)

    @pytest.mark.asyncio
    async def test_singleton_ignores_key(self):
        registry = make_registry()
        handle = await registry.resolve_singleton()
        assert handle.name == SINGLETON_INSTANCE
        assert await registry.resolve_singleton() is handle

    @pytest.mark.asyncio
    async def test_random_of_one_is_always_the_same_instance(self):
        registry = make_registry()
        handles = {id(await registry.resolve_random(1)) for _ in range(10)}
        assert len(handles) == 1

    @pytest.mark.asyncio
    async def test_random_stays_within_pool_bound(self):
        registry = make_registry(seed=3)
        names = {(await registry.resolve_random(3)).name for _ in range(200)}
        assert names == {"instance-0", "instance-1", "instance-2"}

    @pytest.mark.asyncio
    async def test_random_rejects_empty_pool_bound(self):
        registry = make_registry()
        with pytest.raises(ValidationError):
            await registry.resolve_random(0)

    @pytest.mark.asyncio
    async def test_capacity_exhausted(self):
        registry = make_registry(max_instances=2)
        await registry.resolve_by_name("a")
        await registry.resolve_by_name("b")

        with pytest.raises(BackendUnavailableError) as exc_info:
            await registry.resolve_by_name("c")
        assert "capacity" in exc_info.value.message

        # Existing instances stay reachable
        assert (await registry.resolve_by_name("a")).name == "a"

    @pytest.mark.asyncio
    async def test_empty_pool_raises(self):
        registry = make_registry(urls=[])
        with pytest.raises(BackendUnavailableError):
            await registry.resolve_by_name("a")
        assert registry.live_instances == 0


class TestResolvers:

    @pytest.mark.asyncio
    async def test_by_name_uses_routing_key(self):
        registry = FakeRegistry()
        handle = await build_resolver(registry, "by_name")("k1")
        assert handle.name == "k1"

    @pytest.mark.asyncio
    async def test_singleton_policy(self):
        registry = FakeRegistry()
        handle = await build_resolver(registry, "singleton")("k1")
        assert handle.name == SINGLETON_INSTANCE

    @pytest.mark.asyncio
    async def test_random_policy(self):
        registry = FakeRegistry()
        handle = await build_resolver(registry, "random", pool_size=1)("k1")
        assert handle.name == "instance-0"

    @pytest.mark.asyncio
    async def test_named_resolver_ignores_key(self):
        registry = FakeRegistry()
        handle = await named_resolver(registry, "app")("whatever")
        assert handle.name == "app"

    def test_unknown_policy(self):
        with pytest.raises(ValueError):
            build_resolver(FakeRegistry(), "round_robin")


class TestHttpBackend:

    @pytest.mark.asyncio
    async def test_relays_status_headers_and_body(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                201,
                headers=[
                    ("content-type", "application/json"),
                    ("set-cookie", "a=1"),
                    ("set-cookie", "b=2"),
                ],
                content=b'{"ok":true}',
            )

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            backend = HttpBackend("s1", "http://backend-1:8080/", client)
            response = await backend.fetch(
                ForwardRequest(
                    method="GET",
                    origin="http://edge.test",
                    path="/foo/bar",
                    query="x=1",
                    headers=[("host", "edge.test"), ("x-session-id", "s1")],
                )
            )
            body = response.body

        assert str(seen[0].url) == "http://backend-1:8080/foo/bar?x=1"
        assert seen[0].headers["host"] == "backend-1:8080"
        assert seen[0].headers["x-session-id"] == "s1"
        assert response.status_code == 201
        assert body == b'{"ok":true}'
        cookies = [v for k, v in response.raw_headers if k == b"set-cookie"]
        assert cookies == [b"a=1", b"b=2"]

    @pytest.mark.asyncio
    async def test_relays_streamed_body_in_chunks(self):
        async def chunks():
            yield b"first,"
            yield b"second"

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, headers={"content-type": "text/plain"}, content=chunks())

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            backend = HttpBackend("s1", "http://backend-1:8080", client)
            response = await backend.fetch(
                ForwardRequest(method="GET", origin="http://edge.test", path="/stream")
            )
            body = b"".join([chunk async for chunk in response.body_iterator])
            await response.background()

        assert body == b"first,second"
        assert (b"content-type", b"text/plain") in response.raw_headers

    @pytest.mark.asyncio
    async def test_network_error_raises_forwarding_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            backend = HttpBackend("s1", "http://backend-1:8080", client)
            with pytest.raises(ForwardingError) as exc_info:
                await backend.fetch(
                    ForwardRequest(method="GET", origin="http://edge.test", path="/")
                )

        assert exc_info.value.message == "connection refused"
        assert exc_info.value.backend == "s1"

    def test_asset_backend_disabled_without_origin(self):
        client = httpx.AsyncClient()
        assert create_asset_backend(client, "") is None
        assert create_asset_backend(client, "http://assets").base_url == "http://assets"
