"""
Container Gateway — Router Unit Tests
=======================================

What:  Tests for routing key extraction, prefix stripping, request rewriting
       and the ContainerRouter result type.
How:   Bare Starlette requests and the in-memory FakeRegistry (no HTTP).

What we test:
    ✅ Routing key fallback chain (query → header → default)
    ✅ Prefix stripping never yields an empty path
    ✅ Query string, method, headers and body survive the rewrite
    ✅ Resolution failures become ForwardFailure (never raise)
    ✅ Resolution timeout is a failure
"""

import asyncio

import pytest

from container_gateway.exceptions import BackendUnavailableError
from container_gateway.services.forwarding import (
    FAILURE_SUMMARY,
    ContainerRouter,
    ForwardFailure,
    ForwardSuccess,
    build_forward_request,
    extract_routing_key,
    strip_prefix,
)
from container_gateway.services.instances import build_resolver
from tests.fakes import FakeRegistry, make_request

PREFIX = "/api/container"


class TestRoutingKey:
    """The routing key is total: it always resolves to a value."""

    def test_defaults_without_query_or_header(self):
        assert extract_routing_key(make_request("/api/container/health")) == "default"

    def test_header_used_when_no_query(self):
        request = make_request("/x", headers={"x-session-id": "abc123"})
        assert extract_routing_key(request) == "abc123"

    def test_query_wins_over_header(self):
        request = make_request("/x", query="session=q1", headers={"x-session-id": "h1"})
        assert extract_routing_key(request) == "q1"

    def test_empty_query_falls_through_to_header(self):
        request = make_request("/x", query="session=", headers={"x-session-id": "h1"})
        assert extract_routing_key(request) == "h1"

    def test_empty_header_falls_through_to_default(self):
        request = make_request("/x", headers={"x-session-id": ""})
        assert extract_routing_key(request) == "default"

    def test_first_query_value_is_used(self):
        request = make_request("/x", query="session=first&session=second")
        assert extract_routing_key(request) == "first"

    def test_custom_sources(self):
        request = make_request("/x", headers={"x-tenant": "acme"})
        key = extract_routing_key(request, query_param="tenant", header="x-tenant", default="none")
        assert key == "acme"


class TestStripPrefix:

    def test_bare_prefix_becomes_root(self):
        assert strip_prefix("/api/container", PREFIX) == "/"

    def test_prefix_with_trailing_slash_becomes_root(self):
        assert strip_prefix("/api/container/", PREFIX) == "/"

    def test_nested_path(self):
        assert strip_prefix("/api/container/foo/bar", PREFIX) == "/foo/bar"

    def test_prefix_only_matches_whole_segments(self):
        assert strip_prefix("/api/containers/x", PREFIX) == "/api/containers/x"

    def test_unprefixed_path_is_unchanged(self):
        assert strip_prefix("/health", PREFIX) == "/health"

    def test_empty_prefix_keeps_path(self):
        assert strip_prefix("/app/home", "") == "/app/home"

    def test_empty_path_becomes_root(self):
        assert strip_prefix("", "") == "/"


class TestBuildForwardRequest:

    def test_query_string_preserved(self):
        request = make_request("/api/container/foo/bar", query="x=1")
        forward = build_forward_request(request, "/foo/bar")
        assert forward.path == "/foo/bar"
        assert forward.query == "x=1"
        assert forward.target == "/foo/bar?x=1"

    def test_same_origin(self):
        forward = build_forward_request(make_request("/api/container/a"), "/a")
        assert forward.url == "http://edge.test/a"

    def test_method_and_headers_preserved(self):
        request = make_request(
            "/api/container/a", method="PUT", headers={"x-session-id": "s", "x-custom": "1"}
        )
        forward = build_forward_request(request, "/a")
        assert forward.method == "PUT"
        assert forward.header("X-Custom") == "1"
        assert forward.header("x-session-id") == "s"

    def test_bodiless_request_has_no_body_stream(self):
        forward = build_forward_request(make_request("/api/container/a"), "/a")
        assert forward.body is None

    @pytest.mark.asyncio
    async def test_body_stream_attached(self):
        request = make_request("/api/container/a", method="POST", body=b'{"a":1}')
        forward = build_forward_request(request, "/a")
        chunks = [chunk async for chunk in forward.body]
        assert b"".join(chunks) == b'{"a":1}'


class TestContainerRouter:

    def setup_method(self):
        self.router = ContainerRouter(prefix=PREFIX, resolve_timeout=1.0)

    @pytest.mark.asyncio
    async def test_routes_by_session_header(self):
        registry = FakeRegistry()
        request = make_request("/api/container/health", headers={"x-session-id": "abc123"})

        result = await self.router.route(request, build_resolver(registry, "by_name"))

        assert isinstance(result, ForwardSuccess)
        assert registry.resolved == ["abc123"]
        assert registry.backends["abc123"].received[0].target == "/health"

    @pytest.mark.asyncio
    async def test_bare_prefix_forwards_to_root(self):
        registry = FakeRegistry()
        await self.router.route(make_request("/api/container"), build_resolver(registry, "by_name"))
        assert registry.backends["default"].received[0].path == "/"

    @pytest.mark.asyncio
    async def test_resolution_error_becomes_failure(self):
        registry = FakeRegistry(fail_with=RuntimeError("capacity exhausted"))

        result = await self.router.route(
            make_request("/api/container/x"), build_resolver(registry, "by_name")
        )

        assert isinstance(result, ForwardFailure)
        assert result.as_dict() == {
            "error": FAILURE_SUMMARY,
            "message": "capacity exhausted",
        }

    @pytest.mark.asyncio
    async def test_empty_error_message_is_unknown_error(self):
        registry = FakeRegistry(fail_with=RuntimeError())
        result = await self.router.route(
            make_request("/api/container/x"), build_resolver(registry, "by_name")
        )
        assert result.message == "Unknown error"

    @pytest.mark.asyncio
    async def test_failure_is_logged_with_routing_key(self, caplog):
        registry = FakeRegistry(fail_with=RuntimeError("boom"))
        request = make_request("/api/container/x", query="session=s-42")

        with caplog.at_level("ERROR", logger="container_gateway.services.forwarding"):
            await self.router.route(request, build_resolver(registry, "by_name"))

        assert "s-42" in caplog.text
        assert "boom" in caplog.text

    @pytest.mark.asyncio
    async def test_resolution_timeout_is_failure(self):
        router = ContainerRouter(prefix=PREFIX, resolve_timeout=0.01)

        async def slow_resolver(key):
            await asyncio.sleep(1)

        result = await router.route(make_request("/api/container/x"), slow_resolver)

        assert isinstance(result, ForwardFailure)
        assert "Timed out" in result.message

    @pytest.mark.asyncio
    async def test_fetch_error_becomes_failure(self):
        registry = FakeRegistry()
        handle = await registry.resolve_by_name("s")

        async def broken_fetch(request):
            raise BackendUnavailableError("instance is asleep")

        handle.fetch = broken_fetch
        result = await self.router.route(
            make_request("/api/container/x", query="session=s"),
            build_resolver(registry, "by_name"),
        )
        assert isinstance(result, ForwardFailure)
        assert result.message == "instance is asleep"
