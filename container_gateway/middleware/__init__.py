# Middleware package init
"""
Container Gateway — Middleware Package
========================================

What:  Cross-cutting concerns applied to every request on all three apps.

Middleware Chain:
    Request → [Request ID] → [Logging] → Route Handler

Nothing here rewrites bodies: forwarded responses leave the gateway with
the backend's bytes, status and headers untouched. X-Request-ID is only
added to responses the gateway builds itself.
"""
