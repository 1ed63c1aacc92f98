"""
orderdesk: resilient order-data access for a storefront admin

Reads and writes orders against a backend whose endpoint paths, response
shapes and field names are not standardized.

=== CORE FEATURES ===

READ PATH:
- Ordered candidate endpoints, tried sequentially until one answers
- Response normalization across array/data/orders/single-object payloads
- Alias-priority field extraction into canonical Order records
- Twelve stable client-side sort modes
- Pagination metadata from totalPages, total, or the full-page heuristic
- Numeric search fast path (exact order id, one request)
- Deduplicated user-name enrichment with a shared in-flight lookup cache

WRITE PATH:
- Single status updates via PATCH then PUT across candidate paths
- Bulk status updates grouped by target status, non-atomic
- CSV id upload

SESSION:
- Per-sequence generation counters discard stale results
- Mutations refresh every loaded view
"""

from __future__ import annotations

import importlib
from typing import Any

from orderdesk.__version__ import __version__

_EXPORT_MAP = {
    "BulkGroupResult": ("orderdesk.models", "BulkGroupResult"),
    "BulkMutationCoordinator": ("orderdesk.mutations", "BulkMutationCoordinator"),
    "BulkMutationError": ("orderdesk.exceptions", "BulkMutationError"),
    "BulkResult": ("orderdesk.models", "BulkResult"),
    "BulkRow": ("orderdesk.models", "BulkRow"),
    "ClientConfig": ("orderdesk.config", "ClientConfig"),
    "ConfigurationError": ("orderdesk.exceptions", "ConfigurationError"),
    "EndpointConfig": ("orderdesk.config", "EndpointConfig"),
    "EndpointResolver": ("orderdesk.resolver", "EndpointResolver"),
    "EnrichmentCache": ("orderdesk.enrichment", "EnrichmentCache"),
    "AiohttpTransport": ("orderdesk.http_client", "AiohttpTransport"),
    "MutationAttempt": ("orderdesk.config", "MutationAttempt"),
    "Order": ("orderdesk.models", "Order"),
    "OrderDeskError": ("orderdesk.exceptions", "OrderDeskError"),
    "OrderDeskSession": ("orderdesk.session", "OrderDeskSession"),
    "OrderPage": ("orderdesk.models", "OrderPage"),
    "OrderStats": ("orderdesk.stats", "OrderStats"),
    "OrderStatus": ("orderdesk.models", "OrderStatus"),
    "PageQuery": ("orderdesk.pagination", "PageQuery"),
    "PaginationController": ("orderdesk.pagination", "PaginationController"),
    "PaginationMeta": ("orderdesk.models", "PaginationMeta"),
    "RawResponse": ("orderdesk.protocols", "RawResponse"),
    "SortMode": ("orderdesk.sorting", "SortMode"),
    "StatusUpdateError": ("orderdesk.exceptions", "StatusUpdateError"),
    "Transport": ("orderdesk.protocols", "Transport"),
    "TransportError": ("orderdesk.exceptions", "TransportError"),
    "ValidationError": ("orderdesk.exceptions", "ValidationError"),
    "configure_logging": ("orderdesk.logging_config", "configure_logging"),
    "derive_pagination": ("orderdesk.pagination", "derive_pagination"),
    "get_client_config": ("orderdesk.config", "get_client_config"),
    "normalize": ("orderdesk.normalize", "normalize"),
    "sort_orders": ("orderdesk.sorting", "sort_orders"),
}


def __getattr__(name: str) -> Any:
    """Lazily import public symbols so ``import orderdesk`` stays cheap."""
    try:
        module_name, attr_name = _EXPORT_MAP[name]
    except KeyError as exc:
        raise AttributeError(f"module 'orderdesk' has no attribute {name!r}") from exc
    module = importlib.import_module(module_name)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> list[str]:
    return sorted(set(globals()) | set(__all__))


__all__ = [
    "__version__",
    # Models
    "Order",
    "OrderStatus",
    "OrderPage",
    "PaginationMeta",
    "BulkRow",
    "BulkResult",
    "BulkGroupResult",
    "OrderStats",
    # Read path
    "normalize",
    "sort_orders",
    "SortMode",
    "derive_pagination",
    "PageQuery",
    "PaginationController",
    "EndpointResolver",
    "EnrichmentCache",
    # Write path
    "BulkMutationCoordinator",
    # Session
    "OrderDeskSession",
    # Configuration
    "ClientConfig",
    "EndpointConfig",
    "MutationAttempt",
    "get_client_config",
    "configure_logging",
    # Transport
    "Transport",
    "RawResponse",
    "AiohttpTransport",
    # Errors
    "OrderDeskError",
    "ConfigurationError",
    "ValidationError",
    "TransportError",
    "BulkMutationError",
    "StatusUpdateError",
]
