"""
Status mutations against a backend with no settled write contract.

Bulk updates group ids by target status and, for each group, walk a fixed
list of ``(verb, path, body-key)`` combinations until one is accepted. The
first success ends the walk for that group. When every combination fails
the whole operation stops and reports the failing group.

Groups are NOT applied atomically. Groups accepted before the failing one
stay applied; ``BulkMutationError.committed`` lists them, so callers must
read a bulk failure as "some prefix of groups may already have applied".
There is no retry backoff: each combination is tried exactly once.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping
from typing import Any, Iterable, Optional, Sequence, Union

from orderdesk.config import EndpointConfig, MutationAttempt
from orderdesk.exceptions import (
    BulkMutationError,
    StatusUpdateError,
    TransportError,
    ValidationError,
)
from orderdesk.models import BulkGroupResult, BulkResult, BulkRow, OrderStatus
from orderdesk.protocols import RawResponse, Transport

logger = logging.getLogger(__name__)

RowLike = Union[BulkRow, Mapping[str, Any]]

_DIGITS = re.compile(r"^[0-9]+$")


def parse_status(value: Any) -> str:
    """Return the canonical spelling of a status, or raise ValidationError."""
    status = OrderStatus.parse(value)
    if status is None:
        allowed = ", ".join(s.value for s in OrderStatus)
        raise ValidationError(f"Invalid status {value!r}; expected one of: {allowed}")
    return status.value


def parse_order_id(value: Any) -> Optional[int]:
    """Parse a positive integer order id, or return None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value > 0 else None
    text = str(value or "").strip()
    return int(text) if _DIGITS.match(text) and int(text) > 0 else None


def _row_fields(row: RowLike) -> tuple[Any, Any]:
    if isinstance(row, BulkRow):
        return row.id, row.target_status
    status = row.get("targetStatus", row.get("target_status", row.get("status")))
    return row.get("id"), status


def group_by_status(rows: Iterable[RowLike]) -> dict[str, list[int]]:
    """Group valid ids by target status, in first-appearance order.

    Rows with a non-numeric id are skipped. An unknown status raises
    ValidationError before anything is sent.
    """
    groups: dict[str, list[int]] = {}
    for row in rows:
        raw_id, raw_status = _row_fields(row)
        order_id = parse_order_id(raw_id)
        if order_id is None:
            logger.debug(f"Skipping bulk row with invalid id: {raw_id!r}")
            continue
        ids = groups.setdefault(parse_status(raw_status), [])
        if order_id not in ids:
            ids.append(order_id)
    return groups


def parse_csv_ids(text: str) -> list[int]:
    """Extract order ids from newline-delimited CSV text.

    The first comma-delimited field of each row is the id; rows whose first
    field is not a positive integer (headers, blanks) are dropped.
    """
    ids: list[int] = []
    for line in text.lstrip("\ufeff").splitlines():
        first = line.split(",", 1)[0].strip().strip('"')
        order_id = parse_order_id(first)
        if order_id is not None:
            ids.append(order_id)
    return ids


class BulkMutationCoordinator:
    """Applies status changes through ordered candidate endpoints."""

    def __init__(self, transport: Transport, endpoints: EndpointConfig):
        self.transport = transport
        self.endpoints = endpoints

    async def _send(self, method: str, path: str, body: dict[str, Any]) -> Optional[RawResponse]:
        try:
            response = await self.transport.request(method, path, json=body)
        except TransportError as e:
            logger.debug(f"Mutation attempt {method} {path} failed: {e}")
            return None
        if not response.ok:
            logger.debug(f"Mutation attempt {method} {path} returned HTTP {response.status}")
            return None
        return response

    async def _apply_group(
        self,
        attempts: Sequence[MutationAttempt],
        status: str,
        ids: list[int],
    ) -> Optional[MutationAttempt]:
        for attempt in attempts:
            response = await self._send(attempt.method, attempt.path, attempt.body(ids, status))
            if response is not None:
                logger.info(
                    f"Bulk {status}: {len(ids)} order(s) via "
                    f"{attempt.method} {attempt.path} [{attempt.body_key}]"
                )
                return attempt
        return None

    async def _run_groups(
        self,
        groups: dict[str, list[int]],
        attempts: Sequence[MutationAttempt],
    ) -> BulkResult:
        result = BulkResult()
        for status, ids in groups.items():
            attempt = await self._apply_group(attempts, status, ids)
            if attempt is None:
                logger.error(
                    f"Bulk endpoint failed for {status} after {len(attempts)} attempts; "
                    f"{len(result.groups)} earlier group(s) remain applied"
                )
                raise BulkMutationError(
                    status, ids, committed=result.groups, attempts=len(attempts)
                )
            result.groups.append(
                BulkGroupResult(
                    status=status,
                    ids=tuple(ids),
                    method=attempt.method,
                    path=attempt.path,
                    body_key=attempt.body_key,
                )
            )
        return result

    async def bulk_update(self, rows: Iterable[RowLike]) -> BulkResult:
        """Apply per-row target statuses, one request sequence per status group.

        Raises:
            ValidationError: If no row carries a valid id, or a status is unknown.
            BulkMutationError: If every combination failed for some group.
        """
        groups = group_by_status(rows)
        if not groups:
            raise ValidationError("No valid numeric IDs.")
        return await self._run_groups(groups, self.endpoints.bulk_attempts)

    async def bulk_update_from_csv(self, text: str, status: str) -> BulkResult:
        """Apply one status to every id found in CSV text.

        Raises:
            ValidationError: If the text holds no numeric ids, or status is unknown.
            BulkMutationError: If every combination failed.
        """
        status = parse_status(status)
        ids = list(dict.fromkeys(parse_csv_ids(text)))
        if not ids:
            raise ValidationError("No numeric IDs found in CSV.")
        return await self._run_groups({status: ids}, self.endpoints.csv_bulk_attempts)

    async def update_status(self, order_id: Union[int, str], status: str) -> RawResponse:
        """Set one order's status.

        Tries PATCH against every candidate path, then PUT against the same
        paths, and stops at the first success.

        Raises:
            ValidationError: If the status is unknown.
            StatusUpdateError: If every attempt failed.
        """
        status = parse_status(status)
        paths = [p.format(order_id=order_id) for p in self.endpoints.status_paths]
        attempts = 0
        for method in ("PATCH", "PUT"):
            for path in paths:
                attempts += 1
                response = await self._send(method, path, {"status": status})
                if response is not None:
                    logger.info(f"Order {order_id} set to {status} via {method} {path}")
                    return response
        logger.error(f"Could not update order {order_id} to {status} after {attempts} attempts")
        raise StatusUpdateError(order_id, status, attempts=attempts)


__all__ = [
    "BulkMutationCoordinator",
    "group_by_status",
    "parse_csv_ids",
    "parse_order_id",
    "parse_status",
]
