"""
Container Gateway — Gateway Response Schemas
==============================================

What:  Pydantic models for the responses the gateway itself produces.
How:   Used as response_model / OpenAPI documentation for gateway routes.
       Forwarded backend responses are never re-validated against these.
"""

from typing import Optional

from pydantic import BaseModel, Field


class ContainerErrorResponse(BaseModel):
    """
    What:  Body of the 500 returned when a container request fails.
    Who:   Returned by the prefixed and dispatch routes on resolution or
           forwarding failure.

    Example:
        {"error": "Container request failed", "message": "Connection refused"}
    """
    error: str = Field(description="Failure summary")
    message: str = Field(description="Failure detail, or 'Unknown error'")


class ErrorResponse(BaseModel):
    """
    What:  Error envelope for failures raised outside the container routes.

    Fields:
        error: Machine-readable error code (e.g., "not_found")
        message: Human-readable description
        details: Optional extra context
        request_id: Correlation ID for tracing this error in server logs
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    """Gateway health: configuration summary plus registry occupancy."""
    status: str = Field(description="Overall gateway status: healthy, degraded")
    version: str = Field(description="Application version")
    selection_policy: str = Field(description="Policy used for prefixed requests")
    route_prefix: str = Field(description="Prefix that marks routable requests")
    backends: int = Field(description="Configured backend base URLs")
    live_instances: int = Field(description="Instance handles held by the registry")
    uptime_seconds: float = Field(description="Seconds since the gateway started")
