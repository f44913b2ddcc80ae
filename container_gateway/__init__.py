"""
Container Gateway — Application Package Initializer
=====================================================

What: Session-affine HTTP router in front of backend compute instances,
      plus the placeholder application those instances run.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, error shape
    ├─────────────────────────────────────┤
    │   Services (Router & Selector)      │  ← key, rewrite, resolve, forward
    ├─────────────────────────────────────┤
    │   Registry / Backend handles        │  ← injected capability (httpx pool)
    └─────────────────────────────────────┘

Entry points:
    container_gateway.main:app           edge gateway (prefix routing + assets)
    container_gateway.main:dispatch_app  internal policy dispatch
    container_gateway.worker:app         placeholder container application
"""

__version__ = "1.0.0"
