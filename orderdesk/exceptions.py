"""
Custom exception types for orderdesk.

This module defines the exception hierarchy used throughout the package.
Read-path failures are never raised to callers (the resolver logs and moves
on), so most of these types describe configuration problems, invalid input,
or mutations that exhausted every candidate endpoint.
"""

from __future__ import annotations

from typing import Any


class OrderDeskError(Exception):
    """Base exception for all orderdesk errors.

    All custom exceptions in orderdesk inherit from this class so callers
    can catch every package-specific error with a single handler.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} (details: {self.details})"
        return self.message


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigurationError(OrderDeskError):
    """Raised when client or endpoint configuration is invalid."""

    def __init__(self, component: str, reason: str):
        super().__init__(
            f"Configuration error in {component}: {reason}",
            {"component": component, "reason": reason},
        )
        self.component = component
        self.reason = reason


# ============================================================================
# Validation Errors
# ============================================================================


class ValidationError(OrderDeskError):
    """Raised when caller-supplied input fails validation."""

    pass


class InvalidSortModeError(ValidationError):
    """Raised when a sort mode is not one of the named modes."""

    def __init__(self, mode: str):
        super().__init__(f"Unknown sort mode: {mode}", {"mode": mode})
        self.mode = mode


# ============================================================================
# Transport Errors
# ============================================================================


class TransportError(OrderDeskError):
    """Raised by a transport when a request fails.

    Covers both connection-level failures (``status`` is None) and HTTP
    error responses (``status`` >= 400).
    """

    def __init__(self, method: str, url: str, status: int | None = None, reason: str = ""):
        label = f"HTTP {status}" if status is not None else "transport failure"
        super().__init__(
            f"{method} {url} failed: {label}" + (f" ({reason})" if reason else ""),
            {"method": method, "url": url, "status": status},
        )
        self.method = method
        self.url = url
        self.status = status
        self.reason = reason


# ============================================================================
# Mutation Errors
# ============================================================================


class MutationError(OrderDeskError):
    """Base exception for status mutations that could not be applied."""

    pass


class BulkMutationError(MutationError):
    """Raised when every candidate combination failed for a bulk status group.

    Groups processed before the failing one are NOT rolled back; they are
    listed in ``committed`` so callers know which prefix already applied.
    """

    def __init__(
        self,
        status: str,
        ids: list[int],
        committed: list[Any] | None = None,
        attempts: int = 0,
    ):
        committed = committed or []
        super().__init__(
            f"Bulk endpoint failed for {status}",
            {
                "status": status,
                "ids": list(ids),
                "attempts": attempts,
                "committed_statuses": [getattr(g, "status", g) for g in committed],
            },
        )
        self.status = status
        self.ids = list(ids)
        self.committed = committed
        self.attempts = attempts


class StatusUpdateError(MutationError):
    """Raised when a single order's status could not be updated."""

    def __init__(self, order_id: int | str, status: str, attempts: int = 0):
        super().__init__(
            f"Could not update order {order_id} to {status}",
            {"order_id": order_id, "status": status, "attempts": attempts},
        )
        self.order_id = order_id
        self.status = status
        self.attempts = attempts


__all__ = [
    "OrderDeskError",
    "ConfigurationError",
    "ValidationError",
    "InvalidSortModeError",
    "TransportError",
    "MutationError",
    "BulkMutationError",
    "StatusUpdateError",
]
