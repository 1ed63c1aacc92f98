"""
Supplementary lookups that fill in fields missing from list responses.

List endpoints often omit the customer's display name (and sometimes the
line items). ``EnrichmentCache`` looks names up per user id, shares in-flight
lookups so one id is never requested twice at the same time, and merges each
resolved name into every record that references the id across all views the
caller currently holds.

The cache lives as long as the object that owns it. There is no TTL: a
renamed customer keeps the old name until ``invalidate`` or ``clear`` is
called. That staleness is accepted.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Iterable, Optional, Union

from orderdesk.config import EndpointConfig
from orderdesk.logging_config import get_logger
from orderdesk.models import Order
from orderdesk.normalize import extract_items_count, first_present
from orderdesk.resolver import EndpointResolver

logger = get_logger(__name__)

UserId = Union[int, str]
ViewsProvider = Callable[[], Iterable[Iterable[Order]]]

LOOKUP_NAME_FIELDS = ("name", "full_name", "user.name", "username")


def _unwrap_user(body: Any) -> Optional[dict[str, Any]]:
    if isinstance(body, list):
        body = next((b for b in body if isinstance(b, dict)), None)
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        return body["data"]
    return body if isinstance(body, dict) else None


def _unwrap_detail(body: Any) -> Optional[dict[str, Any]]:
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        inner = body["data"]
        if extract_items_count(inner):
            return inner
    return body if isinstance(body, dict) else None


def apply_user_names(names: dict[str, str], views: Iterable[Iterable[Order]]) -> int:
    """Set ``user_name`` on every record whose user id was resolved.

    Returns the number of records updated.
    """
    updated = 0
    for view in views:
        for order in view:
            name = names.get(str(order.user_id)) if order.user_id is not None else None
            if name and order.user_name != name:
                order.user_name = name
                updated += 1
    return updated


class EnrichmentCache:
    """Deduplicated user-name lookups with a process-lifetime cache.

    Usage:
        cache = EnrichmentCache(resolver, endpoints)
        await cache.enrich(page.orders, views=lambda: [browse, update])
    """

    def __init__(self, resolver: EndpointResolver, endpoints: EndpointConfig):
        self.resolver = resolver
        self.endpoints = endpoints
        self._names: dict[str, str] = {}
        self._inflight: dict[str, asyncio.Task] = {}
        self._hits = 0
        self._misses = 0
        self.requests_issued = 0

    # ------------------------------------------------------------------
    # Cache access
    # ------------------------------------------------------------------

    def get(self, user_id: UserId) -> Optional[str]:
        return self._names.get(str(user_id))

    def set(self, user_id: UserId, name: str) -> None:
        self._names[str(user_id)] = name

    def invalidate(self, user_id: UserId) -> bool:
        """Drop one cached name. Returns True if it was present."""
        return self._names.pop(str(user_id), None) is not None

    def clear(self) -> int:
        """Drop every cached name. Returns the number of entries cleared."""
        count = len(self._names)
        self._names.clear()
        return count

    def __len__(self) -> int:
        return len(self._names)

    @property
    def stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": len(self._names),
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / total if total else 0.0,
            "requests_issued": self.requests_issued,
            "inflight": len(self._inflight),
        }

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def _fetch_name(self, user_id: UserId) -> Optional[str]:
        self.requests_issued += 1
        paths = [p.format(user_id=user_id) for p in self.endpoints.user_paths]
        body = _unwrap_user(await self.resolver.resolve_body(paths))
        if body is None:
            return None
        name = first_present(body, LOOKUP_NAME_FIELDS)
        return str(name) if name is not None else None

    def _on_lookup_done(self, key: str, task: asyncio.Task) -> None:
        self._inflight.pop(key, None)
        if task.cancelled() or task.exception() is not None:
            return
        name = task.result()
        if name:
            self._names[key] = name

    async def lookup(self, user_id: UserId) -> Optional[str]:
        """Resolve one user's display name, sharing any in-flight request."""
        key = str(user_id)
        cached = self._names.get(key)
        if cached:
            self._hits += 1
            return cached
        self._misses += 1

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._fetch_name(user_id))
            self._inflight[key] = task
            task.add_done_callback(lambda t, k=key: self._on_lookup_done(k, t))
        # Shield so one cancelled waiter doesn't cancel the shared lookup
        return await asyncio.shield(task)

    async def enrich(
        self,
        orders: Iterable[Order],
        views: Optional[ViewsProvider] = None,
    ) -> dict[str, str]:
        """Backfill missing display names for ``orders``.

        Distinct missing user ids are looked up concurrently; one failed
        lookup never aborts the others. Resolved names are merged into every
        record in ``views()`` (evaluated after the lookups finish, so it sees
        the caller's current result sets) or into ``orders`` when no views
        provider is given.

        Returns:
            Mapping of user id (as str) to the name applied.
        """
        orders = list(orders)
        resolved: dict[str, str] = {}
        missing: list[UserId] = []
        seen: set[str] = set()
        for order in orders:
            if not order.needs_user_name:
                continue
            key = str(order.user_id)
            if key in seen:
                continue
            seen.add(key)
            cached = self._names.get(key)
            if cached:
                self._hits += 1
                resolved[key] = cached
            else:
                missing.append(order.user_id)

        if missing:
            logger.debug("Looking up user names", count=len(missing))
            results = await asyncio.gather(
                *(self.lookup(uid) for uid in missing), return_exceptions=True
            )
            for uid, result in zip(missing, results):
                if isinstance(result, BaseException):
                    logger.warning("User lookup failed", user_id=uid, error=repr(result))
                elif result:
                    resolved[str(uid)] = result
                else:
                    logger.debug("No name found for user", user_id=uid)

        if resolved:
            targets = views() if views is not None else [orders]
            updated = apply_user_names(resolved, targets)
            logger.debug("Applied user names", users=len(resolved), records=updated)
        return resolved

    async def _fetch_items_count(self, order_id: UserId) -> Optional[int]:
        paths = [p.format(order_id=order_id) for p in self.endpoints.order_detail_paths]
        body = _unwrap_detail(await self.resolver.resolve_body(paths))
        if body is None:
            return None
        count = extract_items_count(body)
        return count or None

    async def backfill_items(
        self,
        orders: Iterable[Order],
        views: Optional[ViewsProvider] = None,
    ) -> dict[str, int]:
        """Fill in item counts for records that arrived without any.

        Each order with a zero count gets one detail lookup; lookups run
        concurrently and failures are logged and skipped.
        """
        orders = list(orders)
        ids: list[UserId] = []
        for order in orders:
            if order.items_count == 0 and order.id not in ids:
                ids.append(order.id)
        if not ids:
            return {}

        results = await asyncio.gather(
            *(self._fetch_items_count(oid) for oid in ids), return_exceptions=True
        )
        counts: dict[str, int] = {}
        for oid, result in zip(ids, results):
            if isinstance(result, BaseException):
                logger.warning("Order detail lookup failed", order_id=oid, error=repr(result))
            elif result:
                counts[str(oid)] = result

        if counts:
            targets = views() if views is not None else [orders]
            for view in targets:
                for order in view:
                    count = counts.get(str(order.id))
                    if count:
                        order.items_count = count
        return counts


__all__ = ["EnrichmentCache", "apply_user_names"]
