"""
Protocol definitions for the order desk's network seam.

Everything above the transport talks to the backend through ``Transport``,
so tests can substitute a deterministic fake for the aiohttp implementation.

Usage:
    from orderdesk.protocols import RawResponse, Transport

    async def ping(transport: Transport) -> bool:
        response = await transport.request("GET", "/api/health")
        return response.ok
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, runtime_checkable


@dataclass(frozen=True)
class RawResponse:
    """A completed HTTP exchange with its decoded JSON body."""

    url: str
    status: int
    body: Any = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


@runtime_checkable
class Transport(Protocol):
    """Protocol for the HTTP layer used by the resolver and mutators.

    Implementations raise ``orderdesk.exceptions.TransportError`` for
    connection failures and for responses with status >= 400.
    """

    async def request(
        self,
        method: str,
        url: str,
        json: Optional[dict[str, Any]] = None,
    ) -> RawResponse:
        """Issue a request. ``url`` is absolute or relative to the base URL."""
        ...


TokenProvider = Callable[[], Optional[str]]
"""Supplies the current bearer token, or None when unauthenticated."""


__all__ = ["RawResponse", "Transport", "TokenProvider"]
