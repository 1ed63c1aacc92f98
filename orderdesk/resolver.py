"""
Sequential candidate-endpoint resolution for the read path.

The backend's list, detail and lookup routes vary between deployments, so a
read names several candidate URLs and takes the first that answers. Candidates
are tried strictly one after another, never in parallel, so no request is
duplicated and the first success ends the sequence.

A read that exhausts every candidate returns None, meaning "no data currently
available". That is never an error for the caller; mutation failures are
handled separately in ``orderdesk.mutations`` and are fatal.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, Mapping, Optional
from urllib.parse import urlencode

from orderdesk.exceptions import TransportError
from orderdesk.protocols import RawResponse, Transport

logger = logging.getLogger(__name__)


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, dict):
        return json.dumps(value, separators=(",", ":"), default=str)
    return str(value)


def build_url(base: str, params: Optional[Mapping[str, Any]] = None) -> str:
    """Append fully encoded query parameters to ``base``.

    None values are dropped, list and tuple values repeat the key, and dict
    values are sent as JSON strings.

    Example:
        >>> build_url("/api/admin/orders", {"page": 1, "status": ["Pending", "Shipped"]})
        '/api/admin/orders?page=1&status=Pending&status=Shipped'
    """
    pairs: list[tuple[str, str]] = []
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((key, _encode_value(v)) for v in value if v is not None)
        else:
            pairs.append((key, _encode_value(value)))
    if not pairs:
        return base
    separator = "&" if "?" in base else "?"
    return f"{base}{separator}{urlencode(pairs)}"


class EndpointResolver:
    """Tries an ordered list of candidate URLs until one yields data."""

    def __init__(self, transport: Transport):
        self.transport = transport

    async def resolve(
        self,
        candidates: Iterable[str],
        params: Optional[Mapping[str, Any]] = None,
    ) -> Optional[RawResponse]:
        """GET each candidate in order and return the first success.

        Transport and HTTP failures are logged and skipped. Returns None when
        every candidate failed.
        """
        tried = 0
        for candidate in candidates:
            url = build_url(candidate, params)
            tried += 1
            try:
                response = await self.transport.request("GET", url)
            except TransportError as e:
                logger.debug(f"Candidate {url} failed: {e}")
                continue
            if not response.ok:
                logger.debug(f"Candidate {url} returned HTTP {response.status}")
                continue
            logger.debug(f"Resolved {url} (candidate {tried})")
            return response

        logger.warning(f"All {tried} candidate endpoint(s) failed; no data available")
        return None

    async def resolve_body(
        self,
        candidates: Iterable[str],
        params: Optional[Mapping[str, Any]] = None,
    ) -> Any:
        """Like ``resolve`` but return only the decoded body (None on exhaustion)."""
        response = await self.resolve(candidates, params)
        return response.body if response is not None else None


__all__ = ["build_url", "EndpointResolver"]
