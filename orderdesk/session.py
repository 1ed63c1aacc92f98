"""
Order-desk session: the page controller behind the admin order screens.

A session owns the transport-backed components, the enrichment cache, and
the canonical state of each independent read sequence ("browse", "update"
and "stats"). Every read captures a generation number for its sequence and
applies its result only if that generation is still current when it
completes, so a slow response to an old filter can never overwrite the
result of a newer one. ``start_load`` also cancels the previous in-flight
task of the same sequence.

Mutations run independently of the read path and re-fetch every loaded
sequence afterward.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from orderdesk.config import ClientConfig, get_client_config
from orderdesk.enrichment import EnrichmentCache
from orderdesk.exceptions import BulkMutationError, ValidationError
from orderdesk.logging_config import LogContext, get_logger, log_function
from orderdesk.models import BulkResult, Order, PaginationMeta
from orderdesk.mutations import BulkMutationCoordinator, RowLike
from orderdesk.normalize import extract_records, normalize_order
from orderdesk.pagination import PageQuery, PaginationController
from orderdesk.protocols import RawResponse, Transport
from orderdesk.resolver import EndpointResolver
from orderdesk.stats import OrderStats, StatsPeriod, normalize_stats, stats_params

logger = get_logger(__name__)

LIST_VIEWS = ("browse", "update")
ITEM_FIELDS = ("items", "order_items", "line_items")


class GenerationCounter:
    """Monotonic per-sequence request tags.

    Usage:
        generation = counter.next("browse")
        result = await fetch()
        if counter.is_current("browse", generation):
            apply(result)
    """

    def __init__(self) -> None:
        self._current: dict[str, int] = {}

    def next(self, sequence: str) -> int:
        """Start a new request for ``sequence``, superseding any in flight."""
        self._current[sequence] = self._current.get(sequence, 0) + 1
        return self._current[sequence]

    def current(self, sequence: str) -> int:
        return self._current.get(sequence, 0)

    def is_current(self, sequence: str, generation: int) -> bool:
        return self._current.get(sequence, 0) == generation


@dataclass
class ViewState:
    """The canonical result set currently held for one list view."""

    query: Optional[PageQuery] = None
    orders: list[Order] = field(default_factory=list)
    meta: PaginationMeta = field(default_factory=lambda: PaginationMeta(1, None, False))
    total: Optional[int] = None
    fast_path: bool = False
    generation: int = 0

    @property
    def loaded(self) -> bool:
        return self.generation > 0


@dataclass
class OrderDetail:
    """An order together with its line items."""

    order: Order
    items: list[dict[str, Any]]


def _extract_items(body: Any) -> Optional[list[Any]]:
    if isinstance(body, list):
        return body or None
    if not isinstance(body, dict):
        return None
    for key in ITEM_FIELDS:
        if isinstance(body.get(key), list) and body[key]:
            return body[key]
    data = body.get("data")
    if isinstance(data, dict) and isinstance(data.get("items"), list) and data["items"]:
        return data["items"]
    return None


class OrderDeskSession:
    """Owns per-sequence state and wires the read and write paths together.

    Args:
        transport: HTTP transport (``AiohttpTransport`` in production).
        config: Client configuration; defaults to ``get_client_config()``.
        cache: Enrichment cache to share; a fresh one is created if omitted.
        backfill_items: Whether to look up item counts missing from lists.
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[ClientConfig] = None,
        cache: Optional[EnrichmentCache] = None,
        backfill_items: bool = True,
    ):
        self.config = config or get_client_config()
        self.endpoints = self.config.endpoints
        self.resolver = EndpointResolver(transport)
        self.pagination = PaginationController(self.resolver, self.endpoints)
        self.mutations = BulkMutationCoordinator(transport, self.endpoints)
        self.cache = cache or EnrichmentCache(self.resolver, self.endpoints)
        self.backfill_items = backfill_items
        self.generations = GenerationCounter()
        self.views: dict[str, ViewState] = {name: ViewState() for name in LIST_VIEWS}
        self.stats = OrderStats()
        self.stats_period: tuple[StatsPeriod, Optional[str]] = ("overall", None)
        self._tasks: dict[str, asyncio.Task] = {}

    def _held_orders(self) -> list[list[Order]]:
        return [state.orders for state in self.views.values()]

    def default_query(self) -> PageQuery:
        return PageQuery(limit=self.config.default_limit)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------

    async def load(self, view: str, query: Optional[PageQuery] = None) -> Optional[ViewState]:
        """Fetch a page for ``view`` and make it the view's current state.

        Returns the updated state, or None when a newer load for the same
        view started before this one completed (the result is discarded).
        """
        if view not in self.views:
            raise ValidationError(f"Unknown view: {view!r}")
        query = query or self.views[view].query or self.default_query()
        generation = self.generations.next(view)

        with LogContext(sequence=view, generation=generation):
            page = await self.pagination.fetch_page(self.endpoints.list_paths(view), query)
            if not self.generations.is_current(view, generation):
                logger.info(
                    "Discarding stale result",
                    current=self.generations.current(view),
                    returned=len(page.orders),
                )
                return None

            state = self.views[view]
            state.query = query
            state.orders = page.orders
            state.meta = page.meta
            state.total = page.total
            state.fast_path = page.fast_path
            state.generation = generation
            logger.debug("Applied page", returned=len(page.orders), has_more=page.meta.has_more)

            await self.cache.enrich(page.orders, views=self._held_orders)
            if self.backfill_items:
                await self.cache.backfill_items(page.orders, views=self._held_orders)
        return state

    def start_load(self, view: str, query: Optional[PageQuery] = None) -> asyncio.Task:
        """Schedule ``load`` as a task, cancelling the view's previous one."""
        previous = self._tasks.get(view)
        if previous is not None and not previous.done():
            logger.debug("Cancelling in-flight load", sequence=view)
            previous.cancel()
        task = asyncio.ensure_future(self.load(view, query))
        self._tasks[view] = task
        return task

    async def load_stats(
        self,
        period: Optional[StatsPeriod] = None,
        value: Optional[str] = None,
    ) -> Optional[OrderStats]:
        """Fetch dashboard counters; unreachable stats leave zeroed counters."""
        if period is not None:
            self.stats_period = (period, value)
        params = stats_params(*self.stats_period)
        generation = self.generations.next("stats")
        with LogContext(sequence="stats", generation=generation):
            body = await self.resolver.resolve_body(self.endpoints.stats_paths, params)
            if not self.generations.is_current("stats", generation):
                logger.info("Discarding stale stats")
                return None
            self.stats = normalize_stats(body)
        return self.stats

    @log_function(level="INFO")
    async def refresh_all(self) -> None:
        """Re-fetch stats and every loaded view; one failure never blocks the rest."""
        coros = [self.load_stats()]
        coros.extend(self.load(name) for name, state in self.views.items() if state.loaded)
        results = await asyncio.gather(*coros, return_exceptions=True)
        for result in results:
            if isinstance(result, BaseException):
                logger.warning("Refresh failed", error=repr(result))

    async def view_order(self, order: Union[Order, int, str]) -> Optional[OrderDetail]:
        """Fetch an order's line items.

        Tries each detail endpoint until one returns items, then falls back
        to the list endpoints filtered by the exact order id.
        """
        order_id = order.id if isinstance(order, Order) else order
        base = order if isinstance(order, Order) else None

        for template in self.endpoints.order_detail_paths:
            response = await self.resolver.resolve([template.format(order_id=order_id)])
            items = _extract_items(response.body) if response is not None else None
            if items:
                return self._detail(order_id, base, response.body, items)

        params = {"page": 1, "limit": 1, self.endpoints.exact_id_param: order_id}
        body = await self.resolver.resolve_body(self.endpoints.update_paths, params)
        records, _ = extract_records(body)
        for record in records:
            listed = normalize_order(record)
            if listed is not None and str(listed.id) == str(order_id):
                items = _extract_items(record)
                if items:
                    return self._detail(order_id, base, record, items)
        logger.info("No line items found for order", order_id=order_id)
        return None

    def _detail(
        self,
        order_id: Union[int, str],
        base: Optional[Order],
        body: Any,
        items: list[Any],
    ) -> OrderDetail:
        detailed = normalize_order(body) if isinstance(body, dict) else None
        order = detailed or base or Order(id=order_id)
        order.items_count = len(items)
        for view in self._held_orders():
            for held in view:
                if str(held.id) == str(order_id):
                    held.items_count = len(items)
        return OrderDetail(order=order, items=[i for i in items if isinstance(i, dict)])

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------

    async def update_status(self, order_id: Union[int, str], status: str) -> RawResponse:
        """Update one order's status, then refresh every sequence."""
        response = await self.mutations.update_status(order_id, status)
        await self.refresh_all()
        return response

    async def bulk_update(self, rows: Iterable[RowLike]) -> BulkResult:
        """Run a grouped bulk update, then refresh every sequence.

        On failure the sequences are still refreshed when earlier groups
        were applied, and the error is re-raised.
        """
        try:
            result = await self.mutations.bulk_update(rows)
        except BulkMutationError as e:
            if e.committed:
                await self.refresh_all()
            raise
        await self.refresh_all()
        return result

    async def bulk_update_from_csv(self, text: str, status: str) -> BulkResult:
        """Apply one status to the ids in CSV text, then refresh."""
        result = await self.mutations.bulk_update_from_csv(text, status)
        await self.refresh_all()
        return result


__all__ = ["GenerationCounter", "ViewState", "OrderDetail", "OrderDeskSession"]
