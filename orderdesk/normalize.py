"""
Response normalization for heterogeneous order payloads.

The backend answers list queries with a bare array, ``{data: [...]}``,
``{orders: [...]}``, or some other object carrying an array, and spells the
same logical field several different ways. ``normalize`` turns any of these
into canonical ``Order`` records plus whatever count metadata was present.

Field extraction uses fixed alias-priority lists: the first non-empty
candidate wins. The canonical camelCase keys come first in every list, so
``Order.to_dict()`` output normalizes back to an equal record.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Union

from orderdesk.models import Order, OrderStatus

logger = logging.getLogger(__name__)

# Alias-priority lists; dotted entries walk nested objects
ID_FIELDS = ("id", "order_id", "orderId", "_id")
STATUS_FIELDS = ("status", "order_status", "state")
USER_ID_FIELDS = ("userId", "user_id", "user.id", "customer_id")
USER_NAME_FIELDS = (
    "userName",
    "user_name",
    "username",
    "name",
    "full_name",
    "customer",
    "customer_name",
    "user.name",
    "user.full_name",
)
AMOUNT_FIELDS = ("totalAmount", "total_amount", "total", "amount", "grand_total", "total_price")
CREATED_AT_FIELDS = ("createdAt", "created_at", "date", "order_date")
DELIVERY_DATE_FIELDS = (
    "deliveryDate",
    "deliver_date",
    "delivery_date",
    "expected_delivery_from",
    "expected_delivery_to",
)
ITEM_ARRAY_FIELDS = ("line_items", "order_items")
ITEM_COUNT_FIELDS = ("itemsCount", "items_count", "item_count", "products_count")

TOTAL_FIELDS = ("total", "totalCount", "total_count")

_DIGITS = re.compile(r"^[0-9]+$")
TOTAL_PAGES_FIELDS = ("totalPages", "total_pages")

# Address object keys, in display order
_ADDRESS_NAME = ("name", "full_name", "recipient", "contact_name")
_ADDRESS_LINE = ("address", "address_line1", "addr", "street")
_ADDRESS_PIN = ("pincode", "postal", "zip", "postcode")
_ADDRESS_PHONE = ("phone", "mobile", "phone_number")


@dataclass
class NormalizedPayload:
    """Canonical records plus the count metadata the server reported."""

    orders: list[Order] = field(default_factory=list)
    total: Optional[int] = None
    total_pages: Optional[int] = None


def _lookup(raw: dict[str, Any], path: str) -> Any:
    value: Any = raw
    for part in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(part)
    return value


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def first_present(raw: dict[str, Any], paths: Iterable[str]) -> Any:
    """Return the first non-empty value among ``paths``, or None."""
    for path in paths:
        value = _lookup(raw, path)
        if not _is_empty(value):
            return value.strip() if isinstance(value, str) else value
    return None


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _coerce_id(value: Any) -> Optional[Union[int, str]]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    text = str(value).strip()
    if not text:
        return None
    return int(text) if _DIGITS.match(text) else text


def extract_items_count(raw: dict[str, Any]) -> int:
    """Derive an item count; never negative.

    Falls back through the ``items`` array length, the alternate item arrays,
    numeric count fields, a numeric scalar ``items``, and finally 0.
    """
    items = raw.get("items")
    if isinstance(items, list) and items:
        return len(items)
    for key in ITEM_ARRAY_FIELDS:
        value = raw.get(key)
        if isinstance(value, list) and value:
            return len(value)
    for key in ITEM_COUNT_FIELDS:
        number = _to_number(raw.get(key))
        if number is not None and number > 0:
            return int(number)
    if items is not None and not isinstance(items, list):
        number = _to_number(items)
        if number is not None and number > 0:
            return int(number)
    return 0


def _parse_json_text(text: str) -> Any:
    trimmed = text.strip()
    if not trimmed or trimmed[0] not in "{[":
        return None
    try:
        return json.loads(trimmed)
    except ValueError:
        return None


def format_address_lines(addr: Any) -> tuple[str, ...]:
    """Reduce a raw address of any shape to display lines."""
    if not addr:
        return ()
    if isinstance(addr, str):
        parsed = _parse_json_text(addr)
        if parsed is not None:
            return format_address_lines(parsed)
        return (addr.strip(),) if addr.strip() else ()
    if isinstance(addr, list):
        return format_address_lines(addr[0])
    if not isinstance(addr, dict):
        return ()

    lines: list[str] = []
    name = first_present(addr, _ADDRESS_NAME)
    if name is not None:
        lines.append(str(name))
    line = first_present(addr, _ADDRESS_LINE)
    if line is not None:
        lines.append(str(line))
    city_state = ", ".join(str(addr[k]).strip() for k in ("city", "state") if addr.get(k))
    if city_state:
        lines.append(city_state)
    pin = first_present(addr, _ADDRESS_PIN)
    if pin is not None:
        lines.append(str(pin))
    if not _is_empty(addr.get("country")):
        lines.append(str(addr["country"]).strip())
    phone = first_present(addr, _ADDRESS_PHONE)
    if phone is not None:
        lines.append(f"Phone: {phone}")
    return tuple(lines)


def extract_shipping_address(raw: dict[str, Any]) -> tuple[str, ...]:
    canonical = raw.get("shippingAddress")
    if isinstance(canonical, (list, tuple)) and all(isinstance(x, str) for x in canonical):
        return tuple(canonical)

    shipping = raw.get("shipping_address")
    if isinstance(shipping, str) and shipping.strip() and _parse_json_text(shipping) is None:
        return (shipping.strip(),)

    if isinstance(raw.get("shipping_json"), str):
        lines = format_address_lines(raw["shipping_json"])
        if lines:
            return lines

    for key in ("shipping", "address", "shipping_address", "shippingAddress"):
        lines = format_address_lines(raw.get(key))
        if lines:
            return lines
    return ()


def _canonical_status(value: Any) -> str:
    if value is None:
        return ""
    parsed = OrderStatus.parse(value)
    return parsed.value if parsed else str(value).strip()


def normalize_order(record: Any) -> Optional[Order]:
    """Build a canonical ``Order`` from one raw record.

    Returns the record unchanged when it is already an ``Order``, and None
    when it is not an object or carries no usable id.
    """
    if isinstance(record, Order):
        return record
    if not isinstance(record, dict):
        return None

    order_id = _coerce_id(first_present(record, ID_FIELDS))
    if order_id is None:
        return None

    user_name = first_present(record, USER_NAME_FIELDS)
    amount = _to_number(first_present(record, AMOUNT_FIELDS))
    created_at = first_present(record, CREATED_AT_FIELDS)
    delivery = first_present(record, DELIVERY_DATE_FIELDS)

    return Order(
        id=order_id,
        status=_canonical_status(first_present(record, STATUS_FIELDS)),
        user_id=_coerce_id(first_present(record, USER_ID_FIELDS)),
        user_name=str(user_name) if user_name is not None else None,
        items_count=extract_items_count(record),
        total_amount=amount if amount is not None else 0.0,
        created_at=str(created_at) if created_at is not None else "",
        delivery_date=str(delivery) if delivery is not None else (
            str(created_at) if created_at is not None else ""
        ),
        shipping_address=extract_shipping_address(record),
        raw=record,
    )


def extract_records(raw: Any) -> tuple[list[Any], Optional[dict[str, Any]]]:
    """Locate the record array in a payload.

    Returns the records and the wrapping object (whose count fields are
    pagination metadata), or None as the wrapper for bare arrays and
    single-record payloads.
    """
    if isinstance(raw, list):
        return raw, None
    if not isinstance(raw, dict):
        return [], None
    for key in ("data", "orders"):
        if isinstance(raw.get(key), list):
            return raw[key], raw
    # A lone order object; its own arrays are line items, not records
    if first_present(raw, ID_FIELDS) is not None:
        return [raw], None
    for value in raw.values():
        if isinstance(value, list):
            return value, raw
    return [], raw


def _meta_int(wrapper: Optional[dict[str, Any]], keys: Iterable[str]) -> Optional[int]:
    if not wrapper:
        return None
    for key in keys:
        value = wrapper.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, int):
            return value
        number = _to_number(value)
        if number is not None and number.is_integer():
            return int(number)
    return None


def normalize(raw: Any) -> NormalizedPayload:
    """Convert an arbitrary server payload into canonical orders.

    Accepts, in priority order: a bare array, ``{data: [...]}``,
    ``{orders: [...]}``, an object whose first array-valued property holds
    the records, or a single record object. Anything else yields an empty
    payload. Normalizing an already-canonical list returns it unchanged.
    """
    records, wrapper = extract_records(raw)
    orders: list[Order] = []
    skipped = 0
    for record in records:
        order = normalize_order(record)
        if order is None:
            skipped += 1
            continue
        orders.append(order)
    if skipped:
        logger.debug(f"Skipped {skipped} record(s) without a usable id")

    total = _meta_int(wrapper, TOTAL_FIELDS)
    total_pages = _meta_int(wrapper, TOTAL_PAGES_FIELDS)
    return NormalizedPayload(orders=orders, total=total, total_pages=total_pages)


__all__ = [
    "NormalizedPayload",
    "normalize",
    "normalize_order",
    "extract_records",
    "extract_items_count",
    "extract_shipping_address",
    "format_address_lines",
    "first_present",
]
