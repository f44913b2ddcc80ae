"""
Container Gateway — Application Configuration
===============================================

What:  Centralized configuration management using Pydantic Settings.
How:   Pydantic Settings reads from environment variables (or .env file),
       validates types/ranges, and provides a singleton `settings` object.
Who:   Imported by the gateway, dispatch and worker apps and by the services.
When:  Loaded once at module import time; validated before the app starts.
"""

from typing import List, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have working defaults for local development: a gateway on
    port 8000 forwarding to a single worker on port 8080.
    """

    # ── Routing ───────────────────────────────────────────────────────────
    # What: Path prefix that marks a request as routable to a container.
    # The prefix is removed before the request is forwarded.
    route_prefix: str = Field(default="/api/container")

    # What: Ordered sources of the routing key (query → header → default)
    session_query_param: str = Field(default="session")
    session_header: str = Field(default="x-session-id")
    default_session: str = Field(default="default", min_length=1)

    @field_validator("route_prefix")
    @classmethod
    def validate_route_prefix(cls, v: str) -> str:
        """Prefix must be an absolute path; a trailing slash is dropped."""
        if not v.startswith("/"):
            raise ValueError(f"Invalid route_prefix '{v}'. It must start with '/'")
        stripped = v.rstrip("/")
        if not stripped:
            raise ValueError("route_prefix cannot be the root path")
        return stripped

    # ── Instance Selection ────────────────────────────────────────────────
    # What: Policy the edge gateway uses to turn a routing key into an instance
    #   by_name:   one instance per routing key (session affinity)
    #   singleton: one shared instance, routing key ignored
    #   random:    uniform pick among `random_pool_size` instances
    selection_policy: Literal["by_name", "singleton", "random"] = Field(default="by_name")
    random_pool_size: int = Field(default=5, ge=1, le=1000)

    # What: Base URLs of the backend pool that instances are placed on
    # Format: Comma-separated URLs (parsed by the property below)
    backend_urls: str = Field(default="http://localhost:8080")

    @property
    def backend_urls_list(self) -> List[str]:
        """Splits comma-separated backend URLs into a list, dropping blanks."""
        return [url.strip().rstrip("/") for url in self.backend_urls.split(",") if url.strip()]

    # What: Upper bound on distinct live instance names held by the registry
    max_instances: int = Field(default=1000, ge=1)

    # ── Timeouts (seconds) ────────────────────────────────────────────────
    resolve_timeout: float = Field(default=10.0, gt=0)
    forward_timeout: float = Field(default=30.0, gt=0)

    # ── Static Assets ─────────────────────────────────────────────────────
    # What: Origin that receives every non-prefixed request untouched.
    # Empty disables the passthrough (such requests get a 404).
    assets_origin: str = Field(default="")

    # ── Worker ────────────────────────────────────────────────────────────
    # What: Loop size of the placeholder /heavy-computation handler
    computation_iterations: int = Field(default=1_000_000, ge=1)

    # ── Server ────────────────────────────────────────────────────────────
    backend_host: str = Field(default="0.0.0.0")
    backend_port: int = Field(default=8000, ge=1024, le=65535)

    # Valid: DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_level: str = Field(default="INFO")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensures log level is a valid Python logging level name."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"Invalid log_level '{v}'. Must be one of: {valid_levels}")
        return upper

    # ── Pydantic Settings Config ──────────────────────────────────────────
    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,  # ROUTE_PREFIX and route_prefix both work
    }

    def validate_required_for_production(self) -> None:
        """
        What:  Validates that the backend pool is usable.
        When:  Called during app startup (lifespan).
        How:   Checks each required field and raises ValueError with guidance.
        """
        errors = []
        if not self.backend_urls_list:
            errors.append("BACKEND_URLS is empty. Set at least one backend base URL.")
        for url in self.backend_urls_list:
            if not url.startswith(("http://", "https://")):
                errors.append(f"Backend URL '{url}' must start with http:// or https://")
        if errors:
            raise ValueError(
                "Configuration validation failed:\n" + "\n".join(f"  - {e}" for e in errors)
            )


# Singleton instance, imported throughout the application
settings = Settings()
