"""
Canonical data types for the order desk.

These are the in-memory shapes handed to the rendering layer, independent
of whatever the backend actually returned.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Optional, Union

# Sequences that own their own generation counter
ViewName = Literal["browse", "update", "stats"]

# A page size, or the sentinel meaning "single unpaginated page"
Limit = Union[int, Literal["all"]]

ALL = "all"


class OrderStatus(str, Enum):
    """Order lifecycle status accepted by mutation endpoints.

    Inherits from ``str`` so members compare equal to their raw values::

        assert OrderStatus.SHIPPED == "Shipped"
    """

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value: Any) -> Optional["OrderStatus"]:
        """Match a raw status case-insensitively, or return None."""
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == text:
                return member
        return None


@dataclass
class Order:
    """A canonical order record.

    ``raw`` keeps the backend payload the record was built from; it is
    excluded from equality so two records normalized from differently
    shaped payloads compare equal when their canonical fields match.
    """

    id: Union[int, str]
    status: str = ""
    user_id: Optional[Union[int, str]] = None
    user_name: Optional[str] = None
    items_count: int = 0
    total_amount: float = 0.0
    created_at: str = ""
    delivery_date: str = ""
    shipping_address: tuple[str, ...] = ()
    raw: dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.items_count < 0:
            self.items_count = 0

    @property
    def needs_user_name(self) -> bool:
        """True when a name lookup could fill in ``user_name``."""
        return not self.user_name and self.user_id not in (None, "")

    def to_dict(self) -> dict[str, Any]:
        """Serialize with canonical camelCase keys."""
        return {
            "id": self.id,
            "status": self.status,
            "userId": self.user_id,
            "userName": self.user_name,
            "itemsCount": self.items_count,
            "totalAmount": self.total_amount,
            "createdAt": self.created_at,
            "deliveryDate": self.delivery_date,
            "shippingAddress": list(self.shipping_address),
        }


@dataclass(frozen=True)
class PaginationMeta:
    """Page metadata derived from whatever the server reported.

    When ``total_pages`` is known, ``has_more == (page < total_pages)``.
    When it is None the server gave no counts and ``has_more`` is the
    ``returned_count == limit`` heuristic.
    """

    page: int
    total_pages: Optional[int]
    has_more: bool


@dataclass
class OrderPage:
    """One page of canonical orders plus its metadata."""

    orders: list[Order]
    meta: PaginationMeta
    total: Optional[int] = None
    fast_path: bool = False


@dataclass(frozen=True)
class BulkRow:
    """A single ``{id, targetStatus}`` pair of a bulk request."""

    id: Union[int, str]
    target_status: str


@dataclass(frozen=True)
class BulkGroupResult:
    """A bulk status group that was applied by the server."""

    status: str
    ids: tuple[int, ...]
    method: str
    path: str
    body_key: str


@dataclass
class BulkResult:
    """Outcome of a bulk mutation, groups listed in execution order."""

    groups: list[BulkGroupResult] = field(default_factory=list)

    @property
    def updated_ids(self) -> list[int]:
        return [i for g in self.groups for i in g.ids]


__all__ = [
    "ALL",
    "Limit",
    "ViewName",
    "OrderStatus",
    "Order",
    "PaginationMeta",
    "OrderPage",
    "BulkRow",
    "BulkGroupResult",
    "BulkResult",
]
