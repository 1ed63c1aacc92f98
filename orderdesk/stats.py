"""
Dashboard order statistics.

Stats endpoints report the same counters under camelCase or short names;
``normalize_stats`` maps either spelling onto ``OrderStats``.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass
from typing import Any, Literal, Optional

from orderdesk.exceptions import ValidationError

StatsPeriod = Literal["overall", "monthly", "weekly", "day"]

# field -> aliases, first present wins
STATS_ALIASES: dict[str, tuple[str, ...]] = {
    "total_orders": ("totalOrders", "total"),
    "confirmed_orders": ("confirmedOrders", "confirmed"),
    "pending_orders": ("pendingOrders", "pending"),
    "shipped_orders": ("shippedOrders", "shipped"),
    "delivered_orders": ("deliveredOrders", "delivered"),
    "cancelled_orders": ("cancelledOrders", "cancelled"),
    "total_sales": ("totalSales", "total_sales"),
    "total_items_sold": ("totalItemsSold", "total_items_sold"),
}

_PERIOD_PARAM = {"monthly": "month", "weekly": "week", "day": "date"}


@dataclass(frozen=True)
class OrderStats:
    """Order counters for one reporting period."""

    total_orders: int = 0
    confirmed_orders: int = 0
    pending_orders: int = 0
    shipped_orders: int = 0
    delivered_orders: int = 0
    cancelled_orders: int = 0
    total_sales: float = 0.0
    total_items_sold: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


def _number(value: Any) -> float:
    if value is None or isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return number if math.isfinite(number) else 0.0


def normalize_stats(body: Any) -> OrderStats:
    """Build ``OrderStats`` from a stats payload; missing counters are 0."""
    if isinstance(body, dict) and isinstance(body.get("data"), dict):
        body = body["data"]
    if not isinstance(body, dict):
        return OrderStats()
    values: dict[str, Any] = {}
    for name, aliases in STATS_ALIASES.items():
        raw = next((body[a] for a in aliases if body.get(a) is not None), None)
        number = _number(raw)
        values[name] = number if name == "total_sales" else int(number)
    return OrderStats(**values)


def stats_params(period: StatsPeriod = "overall", value: Optional[str] = None) -> dict[str, str]:
    """Query parameters for a reporting period.

    ``value`` is ``YYYY-MM`` for monthly, ``YYYY-Www`` for weekly and
    ``YYYY-MM-DD`` for day; overall takes none.
    """
    if period == "overall":
        return {}
    param = _PERIOD_PARAM.get(period)
    if param is None:
        raise ValidationError(f"Unknown stats period: {period!r}")
    if not value:
        raise ValidationError(f"Stats period {period!r} requires a value")
    return {param: value}


__all__ = ["OrderStats", "StatsPeriod", "normalize_stats", "stats_params"]
