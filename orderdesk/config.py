"""
Endpoint and client configuration.

The backend's endpoint paths are not standardized, so every read and write
goes through an ordered list of candidates. Those lists live here as
explicit, immutable configuration supplied at construction time, with
environment variable overrides for the client-level settings.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Optional

from orderdesk.exceptions import ConfigurationError

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class MutationAttempt:
    """One ``(verb, path, body-key)`` combination for a bulk mutation.

    Attributes:
        method: HTTP verb, upper case.
        path: Request path, relative to the client base URL.
        body_key: Name of the id-list key in the JSON body.
    """

    method: str
    path: str
    body_key: str = "ids"

    def __post_init__(self) -> None:
        if self.method.upper() not in HTTP_METHODS:
            raise ConfigurationError("MutationAttempt", f"unsupported method {self.method!r}")
        if self.method != self.method.upper():
            object.__setattr__(self, "method", self.method.upper())
        if not self.body_key:
            raise ConfigurationError("MutationAttempt", "body_key must be non-empty")

    def body(self, ids: list[int], status: str) -> dict:
        return {self.body_key: list(ids), "status": status}


DEFAULT_BULK_ATTEMPTS: tuple[MutationAttempt, ...] = (
    MutationAttempt("POST", "/api/admin/orders/bulk-update", "ids"),
    MutationAttempt("PUT", "/api/admin/orders/bulk-update", "ids"),
    MutationAttempt("POST", "/api/admin/orders/bulk-update", "orderIds"),
    MutationAttempt("PUT", "/api/admin/orders/bulk-update", "orderIds"),
    MutationAttempt("POST", "/api/orders/bulk-update", "ids"),
    MutationAttempt("PUT", "/api/orders/bulk-update", "ids"),
)

# The CSV upload only ever targeted the admin bulk path
DEFAULT_CSV_BULK_ATTEMPTS: tuple[MutationAttempt, ...] = DEFAULT_BULK_ATTEMPTS[:4]


@dataclass(frozen=True)
class EndpointConfig:
    """Ordered candidate endpoints for every operation.

    Path templates use ``str.format`` placeholders: ``{order_id}`` for
    per-order paths and ``{user_id}`` for user lookups.

    Example:
        # A backend that only serves the public paths
        config = EndpointConfig(
            browse_paths=("/api/orders",),
            update_paths=("/api/orders",),
        )
    """

    browse_paths: tuple[str, ...] = ("/api/admin/orders",)
    update_paths: tuple[str, ...] = ("/api/admin/orders", "/api/orders", "/orders")
    order_detail_paths: tuple[str, ...] = (
        "/api/admin/orders/{order_id}",
        "/api/orders/{order_id}",
        "/orders/{order_id}",
    )
    status_paths: tuple[str, ...] = (
        "/api/admin/orders/{order_id}",
        "/api/orders/{order_id}",
        "/orders/{order_id}",
    )
    user_paths: tuple[str, ...] = (
        "/api/admin/users/{user_id}",
        "/api/users/{user_id}",
        "/api/users?id={user_id}",
    )
    stats_paths: tuple[str, ...] = (
        "/api/admin/orders/stats",
        "/api/admin/stats",
        "/api/orders/stats",
    )
    bulk_attempts: tuple[MutationAttempt, ...] = DEFAULT_BULK_ATTEMPTS
    csv_bulk_attempts: tuple[MutationAttempt, ...] = DEFAULT_CSV_BULK_ATTEMPTS
    exact_id_param: str = "orderId"
    search_param: str = "search"

    def __post_init__(self) -> None:
        """Validate that no candidate list is empty."""
        for name in (
            "browse_paths",
            "update_paths",
            "order_detail_paths",
            "status_paths",
            "user_paths",
            "stats_paths",
            "bulk_attempts",
            "csv_bulk_attempts",
        ):
            value = getattr(self, name)
            if not value:
                raise ConfigurationError("EndpointConfig", f"{name} must not be empty")
            # Accept lists from callers but store tuples
            if not isinstance(value, tuple):
                object.__setattr__(self, name, tuple(value))

    def list_paths(self, view: str) -> tuple[str, ...]:
        """Candidate list endpoints for a view ("browse" or "update")."""
        if view == "browse":
            return self.browse_paths
        if view == "update":
            return self.update_paths
        raise ConfigurationError("EndpointConfig", f"no list endpoints for view {view!r}")


@dataclass(frozen=True)
class ClientConfig:
    """Client-level settings.

    Attributes:
        base_url: Prefix joined to every candidate path.
        timeout_seconds: Total timeout for a single request.
        default_limit: Page size used when the caller gives none.
        endpoints: Candidate endpoint lists.
    """

    base_url: str = "http://localhost:5000"
    timeout_seconds: float = 30.0
    default_limit: int = 20
    endpoints: EndpointConfig = field(default_factory=EndpointConfig)

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")
        if self.default_limit < 1:
            raise ValueError("default_limit must be at least 1")
        object.__setattr__(self, "base_url", self.base_url.rstrip("/"))

    def with_overrides(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: Optional[float] = None,
        default_limit: Optional[int] = None,
        endpoints: Optional[EndpointConfig] = None,
    ) -> ClientConfig:
        """Create a new config with the non-None overrides applied."""
        changes = {
            "base_url": base_url,
            "timeout_seconds": timeout_seconds,
            "default_limit": default_limit,
            "endpoints": endpoints,
        }
        return replace(self, **{k: v for k, v in changes.items() if v is not None})


def _get_env_int(name: str) -> Optional[int]:
    """Get an integer from environment variable, or None if not set/invalid."""
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _get_env_float(name: str) -> Optional[float]:
    """Get a float from environment variable, or None if not set/invalid."""
    value = os.environ.get(name)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def get_client_config(
    base: Optional[ClientConfig] = None,
    endpoints: Optional[EndpointConfig] = None,
) -> ClientConfig:
    """Build the client configuration, applying environment overrides.

    Environment variables:
        ORDERDESK_BASE_URL: Backend base URL
        ORDERDESK_TIMEOUT_SECONDS: Per-request timeout
        ORDERDESK_DEFAULT_LIMIT: Default page size

    Args:
        base: Starting configuration (defaults to ``ClientConfig()``)
        endpoints: Endpoint lists to use instead of the base config's

    Returns:
        ClientConfig with overrides applied
    """
    config = base or ClientConfig()
    return config.with_overrides(
        base_url=os.environ.get("ORDERDESK_BASE_URL") or None,
        timeout_seconds=_get_env_float("ORDERDESK_TIMEOUT_SECONDS"),
        default_limit=_get_env_int("ORDERDESK_DEFAULT_LIMIT"),
        endpoints=endpoints,
    )


__all__ = [
    "MutationAttempt",
    "EndpointConfig",
    "ClientConfig",
    "DEFAULT_BULK_ATTEMPTS",
    "DEFAULT_CSV_BULK_ATTEMPTS",
    "get_client_config",
]
