"""
Command-line interface for the order desk.

Usage:
    orderdesk list --search 482
    orderdesk list --view update --sort amount_desc --limit all --json
    orderdesk set-status 17 Shipped
    orderdesk bulk 3=Shipped 4=Shipped 9=Cancelled
    orderdesk csv ids.csv --status Delivered
    orderdesk stats --period monthly --value 2026-10
    orderdesk view 17
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from typing import Any, Optional

from aiohttp import ClientTimeout

from orderdesk.__version__ import __version__
from orderdesk.config import get_client_config
from orderdesk.exceptions import BulkMutationError, OrderDeskError
from orderdesk.http_client import AiohttpTransport
from orderdesk.logging_config import configure_logging
from orderdesk.models import BulkRow, Order
from orderdesk.pagination import PageQuery
from orderdesk.session import OrderDeskSession
from orderdesk.sorting import SortMode


def _format_order(order: Order) -> str:
    name = order.user_name or "-"
    created = order.created_at[:10] if order.created_at else "-"
    return (
        f"#{order.id:<8} {order.status:<10} {name:<24} "
        f"{order.items_count:>3} items  {order.total_amount:>10.2f}  {created}"
    )


def _format_item(item: dict[str, Any]) -> str:
    name = item.get("name") or item.get("product_name") or item.get("product_id", "?")
    return f"  - {name} x{item.get('quantity', 1)}"


def _emit(data: Any, as_json: bool, lines: list[str]) -> None:
    if as_json:
        print(json.dumps(data, indent=2, default=str))
    else:
        for line in lines:
            print(line)


def _parse_bulk_row(text: str) -> BulkRow:
    order_id, sep, status = text.partition("=")
    if not sep or not order_id.strip() or not status.strip():
        raise argparse.ArgumentTypeError(f"expected ID=STATUS, got {text!r}")
    return BulkRow(id=order_id.strip(), target_status=status.strip())


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orderdesk",
        description="Query and update orders through the storefront admin API",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--base-url", help="Backend base URL (default: $ORDERDESK_BASE_URL)")
    parser.add_argument("--token", help="Bearer token (default: $ORDERDESK_TOKEN)")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON log lines")

    sub = parser.add_subparsers(dest="command", required=True)

    p_list = sub.add_parser("list", help="List orders")
    p_list.add_argument("--view", choices=["browse", "update"], default="browse")
    p_list.add_argument("--page", type=int, default=1)
    p_list.add_argument("--limit", default=None, help="Page size or 'all'")
    p_list.add_argument("--search", default="")
    p_list.add_argument("--sort", choices=[m.value for m in SortMode], default="newest")
    p_list.add_argument("--json", action="store_true")

    p_set = sub.add_parser("set-status", help="Update one order's status")
    p_set.add_argument("order_id")
    p_set.add_argument("status")

    p_bulk = sub.add_parser("bulk", help="Bulk update statuses (ID=STATUS ...)")
    p_bulk.add_argument("rows", nargs="+", type=_parse_bulk_row)

    p_csv = sub.add_parser("csv", help="Apply one status to ids in a CSV file")
    p_csv.add_argument("file")
    p_csv.add_argument("--status", required=True)

    p_stats = sub.add_parser("stats", help="Show order statistics")
    p_stats.add_argument(
        "--period", choices=["overall", "monthly", "weekly", "day"], default="overall"
    )
    p_stats.add_argument("--value", default=None, help="YYYY-MM, YYYY-Www or YYYY-MM-DD")
    p_stats.add_argument("--json", action="store_true")

    p_view = sub.add_parser("view", help="Show an order's line items")
    p_view.add_argument("order_id")
    p_view.add_argument("--json", action="store_true")

    return parser


async def run(args: argparse.Namespace, session: OrderDeskSession) -> int:
    """Execute a parsed command against ``session``."""
    if args.command == "list":
        limit = args.limit or session.config.default_limit
        query = PageQuery(page=args.page, limit=limit, search=args.search, sort=args.sort)
        state = await session.load(args.view, query)
        if state is None:
            return 1
        meta = state.meta
        pages = meta.total_pages if meta.total_pages is not None else "?"
        _emit(
            {
                "orders": [o.to_dict() for o in state.orders],
                "page": meta.page,
                "totalPages": meta.total_pages,
                "hasMore": meta.has_more,
            },
            args.json,
            [_format_order(o) for o in state.orders]
            + [f"page {meta.page}/{pages}" + (" (more)" if meta.has_more else "")],
        )
        return 0

    if args.command == "set-status":
        await session.update_status(args.order_id, args.status)
        print(f"Order {args.order_id} set to {args.status}")
        return 0

    if args.command == "bulk":
        result = await session.bulk_update(args.rows)
        for group in result.groups:
            print(f"{group.status}: {', '.join(str(i) for i in group.ids)}")
        return 0

    if args.command == "csv":
        with open(args.file, encoding="utf-8") as f:
            text = f.read()
        result = await session.bulk_update_from_csv(text, args.status)
        print(f"Updated {len(result.updated_ids)} order(s) to {args.status}")
        return 0

    if args.command == "stats":
        stats = await session.load_stats(args.period, args.value)
        if stats is None:
            return 1
        data = stats.to_dict()
        _emit(data, args.json, [f"{k:<18} {v}" for k, v in data.items()])
        return 0

    if args.command == "view":
        detail = await session.view_order(args.order_id)
        if detail is None:
            print(f"No line items found for order {args.order_id}", file=sys.stderr)
            return 1
        _emit(
            {"order": detail.order.to_dict(), "items": detail.items},
            args.json,
            [_format_order(detail.order)] + [_format_item(i) for i in detail.items],
        )
        return 0

    return 2


async def _main_async(args: argparse.Namespace) -> int:
    config = get_client_config()
    if args.base_url:
        config = config.with_overrides(base_url=args.base_url)
    token = args.token or os.environ.get("ORDERDESK_TOKEN")
    timeout = ClientTimeout(total=config.timeout_seconds)
    async with AiohttpTransport(
        config.base_url, token_provider=lambda: token, timeout=timeout
    ) as transport:
        session = OrderDeskSession(transport, config=config)
        return await run(args, session)


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(level=args.log_level, json_output=args.json_logs or None)
    try:
        return asyncio.run(_main_async(args))
    except BulkMutationError as e:
        applied = ", ".join(g.status for g in e.committed) or "none"
        print(f"Error: {e.message} (already applied: {applied})", file=sys.stderr)
        return 1
    except OrderDeskError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    sys.exit(main())
