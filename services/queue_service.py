"""
Order queue filtering and sorting.

Each workflow page is a queue: orders of one status, narrowed by
composable filters and sorted priority-first. Everything here is pure and
works on stored order rows (dicts).
"""

from typing import Optional
from enum import Enum
from datetime import datetime, timezone

from models.base import BaseSchema
from models.order import OrderStatus, Priority, OrderSource, priority_rank
from utils.time_utils import as_utc

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class QueueSort(str, Enum):
    """Secondary sort applied after priority."""
    NEWEST_FIRST = "newest_first"          # created_date desc
    OLDEST_FIRST = "oldest_first"          # created_date asc (FIFO)
    RECENTLY_UPDATED = "recently_updated"  # updated_date desc


class QueueFilters(BaseSchema):
    """Per-request view filters. Never persisted."""

    search: Optional[str] = None
    status: Optional[OrderStatus] = None
    priority: Optional[Priority] = None
    source: Optional[OrderSource] = None


class QueueDefinition(BaseSchema):
    """How one workflow page selects and orders its orders."""

    name: str
    status: Optional[OrderStatus] = None
    secondary_sort: QueueSort
    priority_first: bool = True
    search_skus: bool = False


QUEUES: dict[str, QueueDefinition] = {
    "orders": QueueDefinition(
        name="orders",
        status=None,
        secondary_sort=QueueSort.NEWEST_FIRST,
    ),
    "production": QueueDefinition(
        name="production",
        status=OrderStatus.PRODUCTION,
        secondary_sort=QueueSort.OLDEST_FIRST,
    ),
    "staging": QueueDefinition(
        name="staging",
        status=OrderStatus.STAGING,
        secondary_sort=QueueSort.RECENTLY_UPDATED,
    ),
    "packing": QueueDefinition(
        name="packing",
        status=OrderStatus.STAGING,
        secondary_sort=QueueSort.OLDEST_FIRST,
    ),
    "ready_to_ship": QueueDefinition(
        name="ready_to_ship",
        status=OrderStatus.PROCESSING,
        secondary_sort=QueueSort.RECENTLY_UPDATED,
    ),
    "on_hold": QueueDefinition(
        name="on_hold",
        status=OrderStatus.HOLD,
        secondary_sort=QueueSort.NEWEST_FIRST,
        priority_first=False,
        search_skus=True,
    ),
}


# ===================
# FILTERING
# ===================

def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


def matches_search(order: dict, search: str, include_skus: bool = False) -> bool:
    """Case-insensitive substring match on order number, customer and optionally SKUs."""
    needle = search.strip().lower()
    if not needle:
        return True

    if (
        _contains(order.get("order_number"), needle)
        or _contains(order.get("customer_name"), needle)
        or _contains(order.get("customer_email"), needle)
    ):
        return True

    if include_skus:
        return any(_contains(item.get("sku"), needle) for item in order.get("items") or [])

    return False


def filter_orders(
    orders: list[dict],
    filters: QueueFilters,
    include_skus: bool = False
) -> list[dict]:
    """
    Apply every set filter. Unset filters match everything.

    Returns a new list; input order is preserved.
    """
    result = []
    for order in orders:
        if filters.status and order.get("status") != filters.status.value:
            continue
        if filters.priority and (order.get("priority") or Priority.NORMAL.value) != filters.priority.value:
            continue
        if filters.source and order.get("source") != filters.source.value:
            continue
        if filters.search and not matches_search(order, filters.search, include_skus):
            continue
        result.append(order)
    return result


# ===================
# SORTING
# ===================

def _timestamp(order: dict, field: str) -> datetime:
    return as_utc(order.get(field)) or _EPOCH


def sort_orders(
    orders: list[dict],
    secondary: QueueSort,
    priority_first: bool = True
) -> list[dict]:
    """
    Sort a queue.

    Secondary key first, then a stable sort on priority rank, so that
    rush < priority < normal and ties keep the secondary order.
    """
    if secondary == QueueSort.OLDEST_FIRST:
        result = sorted(orders, key=lambda o: _timestamp(o, "created_date"))
    elif secondary == QueueSort.RECENTLY_UPDATED:
        result = sorted(
            orders,
            key=lambda o: _timestamp(o, "updated_date"),
            reverse=True
        )
    else:
        result = sorted(
            orders,
            key=lambda o: _timestamp(o, "created_date"),
            reverse=True
        )

    if priority_first:
        result.sort(key=lambda o: priority_rank(o.get("priority") or Priority.NORMAL.value))

    return result


def build_queue(orders: list[dict], queue: QueueDefinition, filters: QueueFilters) -> list[dict]:
    """Filter then sort a fetched order set for one queue."""
    selected = filter_orders(orders, filters, include_skus=queue.search_skus)
    return sort_orders(selected, queue.secondary_sort, queue.priority_first)
