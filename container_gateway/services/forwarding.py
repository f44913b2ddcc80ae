"""
Container Gateway — Request Router
====================================

What:  Turns an inbound request into a forwarded request on a backend instance.
How:   Routing key (query → header → default) → prefix stripping → rewrite →
       resolve handle → fetch. The outcome is an explicit ForwardResult; the
       route layer turns a failure into the JSON error response.
Who:   Called by routes/container.py (edge) and routes/dispatch.py (internal).
When:  Once per routable request.

Example:
    GET /api/container/health?x=1   x-session-id: abc123
        routing key  = "abc123"
        target       = "/health?x=1"
        instance     = resolve_by_name("abc123")
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional, Union

from starlette.requests import Request
from starlette.responses import Response

from container_gateway.config import Settings
from container_gateway.exceptions import BackendUnavailableError
from container_gateway.services.backend_base import ForwardRequest
from container_gateway.services.instances import Resolver

logger = logging.getLogger(__name__)

# Summary carried by every forwarding failure
FAILURE_SUMMARY = "Container request failed"


# ══════════════════════════════════════════════════════════════════════════
# Forward Result
# ══════════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class ForwardSuccess:
    """The backend's response, to be returned to the caller verbatim."""

    response: Response


@dataclass(frozen=True)
class ForwardFailure:
    """A resolution or forwarding failure, already reduced to its public shape."""

    error: str
    message: str

    def as_dict(self) -> dict:
        return {"error": self.error, "message": self.message}

    @classmethod
    def from_exception(cls, exc: BaseException) -> "ForwardFailure":
        return cls(error=FAILURE_SUMMARY, message=str(exc) or "Unknown error")


ForwardResult = Union[ForwardSuccess, ForwardFailure]


# ══════════════════════════════════════════════════════════════════════════
# Request Inspection & Rewriting
# ══════════════════════════════════════════════════════════════════════════

def extract_routing_key(
    request: Request,
    query_param: str = "session",
    header: str = "x-session-id",
    default: str = "default",
) -> str:
    """
    First non-empty of: query parameter, header, default.

    Always yields a value; an empty parameter or header falls through to the
    next source.
    """
    query_values = request.query_params.getlist(query_param)
    if query_values and query_values[0]:
        return query_values[0]
    header_value = request.headers.get(header)
    if header_value:
        return header_value
    return default


def has_prefix(path: str, prefix: str) -> bool:
    """True if `path` is `prefix` itself or lies under it by whole segments."""
    return bool(prefix) and (path == prefix or path.startswith(prefix + "/"))


def strip_prefix(path: str, prefix: str) -> str:
    """
    Remove a leading `prefix` from `path`.

    The prefix only matches whole path segments ("/api/container" does not
    strip "/api/containers"). The result is never empty: a bare prefix maps
    to "/".
    """
    if has_prefix(path, prefix):
        path = path[len(prefix):]
    if not path:
        return "/"
    if not path.startswith("/"):
        return "/" + path
    return path


def build_forward_request(request: Request, target_path: str) -> ForwardRequest:
    """
    Rewrite `request` onto `target_path`, keeping everything else.

    Method, raw query string and header pairs are copied unchanged. The body
    stream is attached only if the request declares a body, so bodiless
    requests are not turned into chunked uploads.
    """
    has_body = "content-length" in request.headers or "transfer-encoding" in request.headers
    return ForwardRequest(
        method=request.method,
        origin=f"{request.url.scheme}://{request.url.netloc}",
        path=target_path,
        query=request.url.query,
        headers=list(request.headers.items()),
        body=request.stream() if has_body else None,
    )


def request_path(request: Request) -> str:
    """Path as received on the wire (percent-encoding preserved) when available."""
    raw_path = request.scope.get("raw_path")
    if raw_path:
        # Some servers include the query string in raw_path
        return raw_path.decode("latin-1").split("?", 1)[0]
    return request.url.path


def mark_forwarded(request: Request) -> None:
    """Flag the response to `request` as a backend's own, to be relayed as-is."""
    request.state.forwarded = True


def is_forwarded(request: Request) -> bool:
    return getattr(request.state, "forwarded", False)


# ══════════════════════════════════════════════════════════════════════════
# Router
# ══════════════════════════════════════════════════════════════════════════

class ContainerRouter:
    """
    Forwards requests to the backend instance picked by a resolver.

    Holds no per-request state; one instance serves all concurrent requests.
    There is no retry: every failure is reported once and returned.
    """

    def __init__(
        self,
        prefix: str = "",
        query_param: str = "session",
        header: str = "x-session-id",
        default_key: str = "default",
        resolve_timeout: Optional[float] = None,
    ):
        self.prefix = prefix.rstrip("/")
        self.query_param = query_param
        self.header = header
        self.default_key = default_key
        self.resolve_timeout = resolve_timeout

    @classmethod
    def from_settings(cls, settings: Settings, prefix: Optional[str] = None) -> "ContainerRouter":
        return cls(
            prefix=settings.route_prefix if prefix is None else prefix,
            query_param=settings.session_query_param,
            header=settings.session_header,
            default_key=settings.default_session,
            resolve_timeout=settings.resolve_timeout,
        )

    def routing_key(self, request: Request) -> str:
        return extract_routing_key(
            request, self.query_param, self.header, self.default_key
        )

    def target_path(self, request: Request) -> str:
        """
        Backend path for `request`, prefix removed.

        Routes match on the decoded path. The wire path is used only when it
        carries the prefix literally; otherwise the prefix itself was
        percent-encoded and the decoded path is stripped instead.
        """
        raw = request_path(request)
        if not self.prefix or has_prefix(raw, self.prefix):
            return strip_prefix(raw, self.prefix)
        return strip_prefix(request.url.path, self.prefix)

    def rewrite(self, request: Request) -> ForwardRequest:
        return build_forward_request(request, self.target_path(request))

    async def _resolve(self, resolver: Resolver, key: str):
        if self.resolve_timeout is None:
            return await resolver(key)
        try:
            return await asyncio.wait_for(resolver(key), timeout=self.resolve_timeout)
        except asyncio.TimeoutError as exc:
            raise BackendUnavailableError(
                f"Timed out after {self.resolve_timeout}s resolving an instance for '{key}'",
                instance=key,
            ) from exc

    async def route(self, request: Request, resolver: Resolver) -> ForwardResult:
        """
        Forward `request` to the instance `resolver` picks for its routing key.

        Returns:
            ForwardSuccess with the backend response, or ForwardFailure when
            resolution or delivery raised.
        """
        key = self.routing_key(request)
        forward_request = self.rewrite(request)
        try:
            handle = await self._resolve(resolver, key)
            response = await handle.fetch(forward_request)
        except Exception as exc:
            logger.error(
                "%s: session=%s target=%s error=%s",
                FAILURE_SUMMARY,
                key,
                forward_request.target,
                exc,
            )
            return ForwardFailure.from_exception(exc)
        mark_forwarded(request)
        return ForwardSuccess(response)
