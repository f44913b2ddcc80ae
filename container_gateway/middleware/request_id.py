"""
Container Gateway — Request ID Middleware
===========================================

What:  Assigns a correlation ID to each incoming request and echoes it back.
How:   Reuses the caller's X-Request-ID or generates a short UUID, stores it
       in a ContextVar for loggers, and sets it on responses the gateway
       builds itself (errors, health, dispatch index).
When:  Outermost middleware, so every later log line can carry the ID.

Forwarded backend responses are relayed with their own headers only. The
inbound header is left in place, so a caller-supplied ID still reaches the
backend instance through the forwarded request.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from container_gateway.services.forwarding import is_forwarded

# Coroutine-local storage for the current request ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    Behavior:
        1. Use X-Request-ID from the client when present
        2. Otherwise generate an 8-character UUID prefix
        3. Store it in request_id_var and request.state
        4. Add it to the response unless the response was forwarded
    """

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID") or str(uuid.uuid4())[:8]
        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)

        if not is_forwarded(request):
            response.headers["X-Request-ID"] = rid
        return response
