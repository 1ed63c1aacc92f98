"""
Page queries, pagination metadata and the numeric-id fast path.

``derive_pagination`` turns whatever counts the server reported into a
``PaginationMeta``, preferring an explicit total-pages value, then a total
record count, then the ``returned_count == limit`` heuristic.

``PaginationController.fetch_page`` runs a full read: a purely numeric search
term is first tried as an exact order id (``limit=1``); a single match is
returned as a one-page result without running the generic search, and no
match falls through to the generic query with the term as free text.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from orderdesk.config import EndpointConfig
from orderdesk.exceptions import ValidationError
from orderdesk.logging_config import get_logger
from orderdesk.models import ALL, Limit, Order, OrderPage, PaginationMeta
from orderdesk.normalize import normalize
from orderdesk.resolver import EndpointResolver
from orderdesk.sorting import SortMode, sort_orders

logger = get_logger(__name__)

_NUMERIC = re.compile(r"^[0-9]+$")

DEFAULT_LIMIT = 20


def is_numeric_search(term: Optional[str]) -> bool:
    """True when ``term`` is a non-empty run of ASCII digits."""
    return bool(term) and bool(_NUMERIC.match(term.strip()))


def _parse_limit(limit: Any) -> Limit:
    if isinstance(limit, str):
        text = limit.strip().lower()
        if text == ALL:
            return ALL
        if _NUMERIC.match(text):
            limit = int(text)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError(f"limit must be a positive integer or 'all', got {limit!r}")
    return limit


@dataclass(frozen=True)
class PageQuery:
    """Filter, sort and page selection for a list read.

    Attributes:
        page: 1-based page number.
        limit: Page size, or ``"all"`` for a single unpaginated page.
        search: Free-text search; a purely numeric term triggers the fast path.
        sort: One of the twelve named sort modes, or None for server order.
    """

    page: int = 1
    limit: Limit = DEFAULT_LIMIT
    search: str = ""
    sort: Optional[str] = SortMode.NEWEST.value

    def __post_init__(self) -> None:
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise ValidationError(f"page must be a positive integer, got {self.page!r}")
        object.__setattr__(self, "limit", _parse_limit(self.limit))
        object.__setattr__(self, "search", (self.search or "").strip())
        if self.sort is not None:
            object.__setattr__(self, "sort", SortMode.parse(self.sort).value)

    @property
    def numeric_limit(self) -> Optional[int]:
        return None if self.limit == ALL else int(self.limit)


def build_search_params(
    query: PageQuery,
    endpoints: EndpointConfig,
    exact_id: bool = False,
) -> dict[str, Any]:
    """Build list query parameters.

    With ``exact_id`` a numeric search term goes in the exact-id parameter;
    otherwise every term is sent as free-text search.
    """
    params: dict[str, Any] = {"page": query.page, "limit": query.limit}
    if query.search:
        if exact_id and is_numeric_search(query.search):
            params[endpoints.exact_id_param] = query.search
        else:
            params[endpoints.search_param] = query.search
    if query.sort:
        params["sort"] = query.sort
    return params


def derive_pagination(
    page: int,
    limit: Limit,
    returned_count: int,
    total: Optional[int] = None,
    total_pages: Optional[int] = None,
) -> PaginationMeta:
    """Compute page metadata from whatever the server reported.

    Priority: explicit ``total_pages``, then ``ceil(total / limit)`` when a
    positive total is known, then the heuristic ``returned_count == limit``
    with unknown total pages. A short page (``returned_count < limit``) is
    always the last page; server counts claiming otherwise are clamped to
    the current page so ``has_more == (page < total_pages)`` still holds.
    """
    if limit == ALL:
        return PaginationMeta(page=page, total_pages=1, has_more=False)

    numeric_limit = int(limit)
    short_page = returned_count < numeric_limit

    pages: Optional[int] = None
    if total_pages is not None and total_pages >= 0:
        pages = total_pages
    elif total is not None and total > 0:
        pages = max(1, math.ceil(total / numeric_limit))

    if pages is None:
        return PaginationMeta(page=page, total_pages=None, has_more=not short_page)

    if short_page and pages > page:
        logger.debug(
            "Server page count disagrees with short page; clamping",
            page=page,
            reported_pages=pages,
            returned=returned_count,
        )
        pages = page
    return PaginationMeta(page=page, total_pages=pages, has_more=page < pages)


class PaginationController:
    """Runs list reads: fast path, generic search, sort and page metadata."""

    def __init__(self, resolver: EndpointResolver, endpoints: EndpointConfig):
        self.resolver = resolver
        self.endpoints = endpoints

    async def _exact_lookup(self, candidates: tuple[str, ...], term: str) -> Optional[Order]:
        params = {"page": 1, "limit": 1, self.endpoints.exact_id_param: term}
        body = await self.resolver.resolve_body(candidates, params)
        orders = normalize(body).orders
        if len(orders) == 1:
            return orders[0]
        # Some backends ignore the exact-id parameter and return a full page
        matches = [o for o in orders if str(o.id) == term]
        if len(matches) == 1:
            return matches[0]
        logger.debug("Exact id lookup inconclusive", term=term, returned=len(orders))
        return None

    async def fetch_page(self, candidates: Iterable[str], query: PageQuery) -> OrderPage:
        """Fetch one page of canonical orders for ``query``.

        Never raises for backend failures; an unreachable backend yields an
        empty page with ``has_more`` False.
        """
        candidates = tuple(candidates)

        if is_numeric_search(query.search):
            match = await self._exact_lookup(candidates, query.search)
            if match is not None:
                logger.debug("Numeric fast path hit", order_id=match.id)
                return OrderPage(
                    orders=[match],
                    meta=PaginationMeta(page=1, total_pages=1, has_more=False),
                    total=1,
                    fast_path=True,
                )

        params = build_search_params(query, self.endpoints, exact_id=False)
        body = await self.resolver.resolve_body(candidates, params)
        payload = normalize(body)
        orders = sort_orders(payload.orders, query.sort)
        meta = derive_pagination(
            query.page,
            query.limit,
            len(orders),
            total=payload.total,
            total_pages=payload.total_pages,
        )
        logger.debug(
            "Fetched page",
            page=query.page,
            returned=len(orders),
            total=payload.total,
            total_pages=meta.total_pages,
            has_more=meta.has_more,
        )
        return OrderPage(orders=orders, meta=meta, total=payload.total)


__all__ = [
    "DEFAULT_LIMIT",
    "PageQuery",
    "PaginationController",
    "build_search_params",
    "derive_pagination",
    "is_numeric_search",
]
