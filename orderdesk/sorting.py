"""
Client-side fallback ordering for canonical orders.

Twelve named sort modes, each backed by a pure comparator ``(a, b) -> int``
that defines a total order over records. Sorting is stable: records that
compare equal keep their original relative order, which is what makes a
single-record fast-path result deterministic.
"""

from __future__ import annotations

from enum import Enum
from functools import cmp_to_key
from typing import Any, Callable, Iterable, Optional, Union

from orderdesk.exceptions import InvalidSortModeError
from orderdesk.models import Order

Comparator = Callable[[Order, Order], int]


class SortMode(str, Enum):
    """Named sort modes accepted by list queries."""

    NEWEST = "newest"
    OLDEST = "oldest"
    AMOUNT_ASC = "amount_asc"
    AMOUNT_DESC = "amount_desc"
    STATUS_ASC = "status_asc"
    STATUS_DESC = "status_desc"
    ITEMS_ASC = "items_asc"
    ITEMS_DESC = "items_desc"
    USER_ASC = "user_asc"
    USER_DESC = "user_desc"
    DELIVERY_ASC = "delivery_asc"
    DELIVERY_DESC = "delivery_desc"

    @classmethod
    def parse(cls, value: Union[str, "SortMode"]) -> "SortMode":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise InvalidSortModeError(str(value)) from None


def _cmp(x: Any, y: Any) -> int:
    return (x > y) - (x < y)


def _created(o: Order) -> str:
    return o.created_at or ""


def _delivery(o: Order) -> str:
    return o.delivery_date or o.created_at or ""


def _status(o: Order) -> str:
    return (o.status or "").casefold()


def _user(o: Order) -> str:
    return (o.user_name or "").casefold()


def _ascending(key: Callable[[Order], Any]) -> Comparator:
    def compare(a: Order, b: Order) -> int:
        return _cmp(key(a), key(b))

    return compare


def _descending(key: Callable[[Order], Any]) -> Comparator:
    def compare(a: Order, b: Order) -> int:
        return _cmp(key(b), key(a))

    return compare


COMPARATORS: dict[SortMode, Comparator] = {
    SortMode.NEWEST: _descending(_created),
    SortMode.OLDEST: _ascending(_created),
    SortMode.AMOUNT_ASC: _ascending(lambda o: o.total_amount),
    SortMode.AMOUNT_DESC: _descending(lambda o: o.total_amount),
    SortMode.STATUS_ASC: _ascending(_status),
    SortMode.STATUS_DESC: _descending(_status),
    SortMode.ITEMS_ASC: _ascending(lambda o: o.items_count),
    SortMode.ITEMS_DESC: _descending(lambda o: o.items_count),
    SortMode.USER_ASC: _ascending(_user),
    SortMode.USER_DESC: _descending(_user),
    SortMode.DELIVERY_ASC: _ascending(_delivery),
    SortMode.DELIVERY_DESC: _descending(_delivery),
}


def get_comparator(mode: Union[str, SortMode]) -> Comparator:
    """Return the comparator for a named mode.

    Raises:
        InvalidSortModeError: If ``mode`` is not one of the twelve modes.
    """
    return COMPARATORS[SortMode.parse(mode)]


def sort_orders(
    orders: Iterable[Order],
    mode: Optional[Union[str, SortMode]],
) -> list[Order]:
    """Return a stably sorted copy of ``orders``.

    A ``mode`` of None keeps the order the server returned.
    """
    if mode is None:
        return list(orders)
    return sorted(orders, key=cmp_to_key(get_comparator(mode)))


__all__ = ["SortMode", "Comparator", "COMPARATORS", "get_comparator", "sort_orders"]
