"""
Shared pytest fixtures for the orderdesk test suite.

The central piece is ``FakeTransport``, a deterministic stand-in for
``AiohttpTransport``: routes are registered per ``(method, url)``, every
request is recorded, and unrouted requests fail the way a 404 would.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

import pytest

from orderdesk.config import ClientConfig, EndpointConfig
from orderdesk.exceptions import TransportError
from orderdesk.logging_config import clear_context
from orderdesk.protocols import RawResponse
from orderdesk.resolver import EndpointResolver


# ============================================================================
# Fake Transport
# ============================================================================


@dataclass
class Route:
    """Canned behaviour for one ``(method, url)`` pair.

    ``handler`` receives the JSON body and returns ``(status, body)``; it
    takes precedence over the static ``status``/``body``.
    """

    body: Any = None
    status: int = 200
    handler: Optional[Callable[[Optional[dict]], tuple[int, Any]]] = None
    exc: Optional[BaseException] = None
    gate: Optional[asyncio.Event] = None
    delay: float = 0.0


class FakeTransport:
    """Recording transport with exact-URL routes and path-only fallback.

    A route registered with a query string only matches that exact URL;
    a route registered without one matches the path with any query.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Route] = {}
        self.calls: list[tuple[str, str, Optional[dict]]] = []

    def add(self, method: str, url: str, body: Any = None, status: int = 200, **kwargs) -> Route:
        route = Route(body=body, status=status, **kwargs)
        self.routes[(method.upper(), url)] = route
        return route

    def urls(self, method: Optional[str] = None) -> list[str]:
        return [u for m, u, _ in self.calls if method is None or m == method]

    def count(self, prefix: str) -> int:
        return sum(1 for _, u, _ in self.calls if u.startswith(prefix))

    def _match(self, method: str, url: str) -> Optional[Route]:
        route = self.routes.get((method, url))
        if route is None:
            route = self.routes.get((method, url.split("?", 1)[0]))
        return route

    async def request(self, method: str, url: str, json: Optional[dict] = None) -> RawResponse:
        self.calls.append((method, url, json))
        route = self._match(method, url)
        if route is None:
            raise TransportError(method, url, 404, "Not Found")
        if route.gate is not None:
            await route.gate.wait()
        if route.delay:
            await asyncio.sleep(route.delay)
        if route.exc is not None:
            raise route.exc
        status, body = route.handler(json) if route.handler else (route.status, route.body)
        if status >= 400:
            raise TransportError(method, url, status)
        return RawResponse(url=url, status=status, body=body)


# ============================================================================
# Markers
# ============================================================================


def pytest_configure(config):
    """Register custom pytest markers.

    Usage:
        @pytest.mark.slow
        async def test_many_concurrent_loads():
            ...
    """
    config.addinivalue_line("markers", "slow: long-running tests (>30 seconds)")
    config.addinivalue_line("markers", "unit: isolated unit tests with no external dependencies")
    config.addinivalue_line(
        "markers", "network: tests requiring a real backend (skip with -m 'not network')"
    )


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def transport() -> FakeTransport:
    """A fresh recording transport with no routes."""
    return FakeTransport()


@pytest.fixture
def endpoints() -> EndpointConfig:
    """Default candidate endpoint lists."""
    return EndpointConfig()


@pytest.fixture
def client_config(endpoints) -> ClientConfig:
    return ClientConfig(base_url="http://shop.test", endpoints=endpoints)


@pytest.fixture
def resolver(transport) -> EndpointResolver:
    return EndpointResolver(transport)


@pytest.fixture(autouse=True)
def reset_log_context():
    """Clear structured log context before and after each test."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def restore_logging():
    """Restore root and package logger state changed by ``configure_logging``."""
    root = logging.getLogger()
    package = logging.getLogger("orderdesk")
    saved = (root.level, root.handlers[:], package.level, package.propagate)
    yield
    for handler in root.handlers:
        if handler not in saved[1]:
            handler.close()
    root.setLevel(saved[0])
    root.handlers[:] = saved[1]
    package.setLevel(saved[2])
    package.propagate = saved[3]
