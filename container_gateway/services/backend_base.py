"""
Container Gateway — Backend Handle & Registry Interfaces
==========================================================

What:  Abstract contracts for reaching backend instances.
How:   `BackendHandle` is the only thing the router talks to when forwarding;
       `InstanceRegistry` is the capability that produces handles. Both are
       injected, so the router can be driven by a fake registry in tests.
Who:   Implemented by services/instances.py (HTTP pool) and by test fakes.
When:  Once per forwarded request: resolve a handle, then fetch through it.

Contract summary:
    InstanceRegistry.resolve_by_name(key)  → same handle for the same key while alive
    InstanceRegistry.resolve_singleton()   → the well-known shared instance
    InstanceRegistry.resolve_random(n)     → uniform pick among n named instances
    BackendHandle.fetch(request)           → transparent HTTP forward
"""

import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import AsyncIterator, List, Optional, Tuple

from starlette.responses import Response

from container_gateway.exceptions import ValidationError

# Instance name used by the singleton policy
SINGLETON_INSTANCE = "singleton"

# Headers that describe a single connection and are never relayed (RFC 9110 §7.6.1)
HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "proxy-connection",
        "te",
        "trailer",
        "transfer-encoding",
        "upgrade",
    }
)


def relayable_headers(
    headers: List[Tuple[str, str]], drop_host: bool = False
) -> List[Tuple[str, str]]:
    """Filters hop-by-hop headers (and optionally `host`), keeping order and repeats."""
    dropped = (HOP_BY_HOP_HEADERS | {"host"}) if drop_host else HOP_BY_HOP_HEADERS
    return [(name, value) for name, value in headers if name.lower() not in dropped]


@dataclass(frozen=True)
class ForwardRequest:
    """
    A request rewritten for delivery to a backend instance.

    Attributes:
        method:  HTTP method, unchanged from the inbound request
        origin:  scheme://host[:port] of the inbound request
        path:    Target path on the backend (never empty)
        query:   Raw query string without the leading '?'
        headers: Header pairs in arrival order (repeated names allowed)
        body:    Inbound body stream, or None when the request carries no body
    """

    method: str
    origin: str
    path: str
    query: str = ""
    headers: List[Tuple[str, str]] = field(default_factory=list)
    body: Optional[AsyncIterator[bytes]] = None

    @property
    def target(self) -> str:
        """Path plus query string, as sent on the request line."""
        return f"{self.path}?{self.query}" if self.query else self.path

    @property
    def url(self) -> str:
        """The rewritten request URL on the inbound origin."""
        return f"{self.origin}{self.target}"

    def header(self, name: str) -> Optional[str]:
        """First value of a header (case-insensitive), or None."""
        lowered = name.lower()
        for key, value in self.headers:
            if key.lower() == lowered:
                return value
        return None


class BackendHandle(ABC):
    """
    Opaque reference to a live backend instance.

    Contract:
        - fetch() delivers the request and returns the backend's response
          as-is (status, headers, body)
        - Delivery failures raise ForwardingError
    """

    name: str

    @abstractmethod
    async def fetch(self, request: ForwardRequest) -> Response:
        """Forward `request` to this instance and return its response."""
        ...


class InstanceRegistry(ABC):
    """
    Capability that turns instance names into live backend handles.

    Only resolve_by_name() is provider-specific. The singleton and
    random-of-N policies are expressed on top of it by instance naming, so
    every registry gets them for free and may still override them.
    """

    def __init__(self, rng: Optional[random.Random] = None):
        self._rng = rng or random.Random()

    @abstractmethod
    async def resolve_by_name(self, name: str) -> BackendHandle:
        """
        Resolve (creating if absent) the instance registered under `name`.

        Raises:
            BackendUnavailableError: When no handle can be produced.
        """
        ...

    @property
    @abstractmethod
    def live_instances(self) -> int:
        """Number of instance handles currently held."""
        ...

    async def resolve_singleton(self) -> BackendHandle:
        """Resolve the single well-known instance, ignoring any routing key."""
        return await self.resolve_by_name(SINGLETON_INSTANCE)

    async def resolve_random(self, n: int) -> BackendHandle:
        """
        Resolve one of `n` instances chosen uniformly at random.

        No affinity: repeated calls may land on different instances.
        With n == 1 the same instance is always returned.
        """
        if n < 1:
            raise ValidationError(
                f"Pool size must be at least 1, got {n}", field="n"
            )
        return await self.resolve_by_name(f"instance-{self._rng.randrange(n)}")
