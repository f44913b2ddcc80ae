"""
Container Gateway — Custom Exception Hierarchy
================================================

What:  Defines application-specific exceptions for the forwarding path.
How:   Each exception class carries a message and optional context dict.
       The router converts resolution and forwarding failures into a
       structured 500 result; global exception handlers (registered in
       main.py) format everything else.
Who:   Raised by services; caught by the router boundary or global handlers.

Exception Hierarchy:
    GatewayError (base)
    ├── BackendUnavailableError  → no handle could be produced (resolution failure)
    ├── ForwardingError          → network/protocol failure while forwarding
    ├── NotFoundError            → 404 Not Found
    └── ValidationError          → 400 Bad Request
"""

from typing import Any, Dict, Optional


class GatewayError(Exception):
    """
    Base exception for all gateway errors.

    Attributes:
        message:  Human-readable error description (returned in API responses)
        context:  Additional debug info (logged but NOT returned to client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class BackendUnavailableError(GatewayError):
    """
    Raised when the instance registry cannot produce a backend handle.

    When:    The backend pool is empty, the registry is at capacity,
             or resolution did not finish within `resolve_timeout`.
    """

    def __init__(
        self,
        message: str = "No backend instance is available",
        instance: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if instance:
            ctx["instance"] = instance
        super().__init__(message=message, context=ctx)
        self.instance = instance


class ForwardingError(GatewayError):
    """
    Raised when delivering a rewritten request to a backend fails.

    When:    Connection refused, DNS failure, timeout, or a protocol error
             before the backend's response headers arrive.
    """

    def __init__(
        self,
        message: str = "Failed to forward request to backend",
        backend: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if backend:
            ctx["backend"] = backend
        super().__init__(message=message, context=ctx)
        self.backend = backend


class NotFoundError(GatewayError):
    """
    Raised when a requested resource does not exist.

    When:    A non-prefixed path arrives and no asset origin is configured.
    HTTP:    404 Not Found
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class ValidationError(GatewayError):
    """
    Raised when a caller passes an invalid argument.

    When:    For example a random-of-N pool bound below 1.
    HTTP:    400 Bad Request
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field
