"""
Standardized HTTP client configuration with proper timeouts.

Provides consistent timeout and session management for all aiohttp usage,
plus ``AiohttpTransport``, the production implementation of
``orderdesk.protocols.Transport``.

Usage:
    from orderdesk.http_client import AiohttpTransport

    async with AiohttpTransport("https://shop.example.com", token_provider=get_token) as t:
        response = await t.request("GET", "/api/admin/orders?page=1")
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

import aiohttp
from aiohttp import ClientTimeout

from orderdesk.exceptions import TransportError
from orderdesk.protocols import RawResponse, TokenProvider

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_TIMEOUT",
    "get_default_timeout",
    "create_client_session",
    "AiohttpTransport",
]

# Default timeout for list and mutation requests (30 seconds total)
DEFAULT_TIMEOUT = ClientTimeout(
    total=30,  # Total time for the entire request
    connect=10,  # Time to establish connection
    sock_read=20,  # Time to read response
)


def get_default_timeout() -> ClientTimeout:
    """Get the default timeout configuration.

    Returns:
        ClientTimeout with sensible defaults for most operations.
    """
    return DEFAULT_TIMEOUT


def create_client_session(
    timeout: ClientTimeout | None = None,
    **kwargs,
) -> aiohttp.ClientSession:
    """Create an aiohttp ClientSession with proper timeout configuration.

    Args:
        timeout: Optional custom timeout. Uses DEFAULT_TIMEOUT if not specified.
        **kwargs: Additional arguments passed to ClientSession.

    Returns:
        Configured aiohttp.ClientSession.
    """
    if timeout is None:
        timeout = DEFAULT_TIMEOUT
    return aiohttp.ClientSession(timeout=timeout, **kwargs)


class AiohttpTransport:
    """Transport backed by a lazily created aiohttp session.

    The bearer token is read from ``token_provider`` on every request so a
    refreshed token is picked up without rebuilding the transport.
    """

    def __init__(
        self,
        base_url: str,
        token_provider: Optional[TokenProvider] = None,
        timeout: ClientTimeout | None = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._token_provider = token_provider
        self._timeout = timeout
        self._session = session
        self._owns_session = session is None

    def _absolute(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        token = self._token_provider() if self._token_provider else None
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = create_client_session(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def request(
        self,
        method: str,
        url: str,
        json: Optional[dict[str, Any]] = None,
    ) -> RawResponse:
        """Issue a request and decode its JSON body.

        Raises:
            TransportError: On connection failure, timeout, or status >= 400.
        """
        full_url = self._absolute(url)
        session = self._get_session()
        try:
            async with session.request(
                method, full_url, json=json, headers=self._headers()
            ) as resp:
                if resp.status >= 400:
                    raise TransportError(method, full_url, resp.status, resp.reason or "")
                try:
                    body = await resp.json(content_type=None)
                except ValueError as e:
                    logger.debug(f"Non-JSON body from {method} {full_url}: {e}")
                    body = None
                return RawResponse(url=full_url, status=resp.status, body=body)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(method, full_url, None, f"{type(e).__name__}: {e}") from e

    async def close(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "AiohttpTransport":
        return self

    async def __aexit__(self, *args) -> None:
        await self.close()
