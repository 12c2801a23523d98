"""
nexusorder/listing.py

Order list filtering and single-column sorting.

Filtering:
- free text (case-insensitive) over client, service, details, PO, contractor and id
- company / status multi-select: OR within a dimension, AND across; empty = all

Sorting:
- computed columns: progress, total_value, margin (via economics)
- strings case-insensitive, numbers numeric, None -> "" (first in ascending order)
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List

from .economics import compute_order_economics, progress_ratio

SEARCH_FIELDS = (
    "client_name",
    "service_name",
    "service_details",
    "po_number",
    "contractor_name",
    "id",
)

SORT_DESC = "desc"


def _matches_search(order: Any, needle: str) -> bool:
    for field in SEARCH_FIELDS:
        value = getattr(order, field, None)
        if value is not None and needle in str(value).lower():
            return True
    return False


def filter_orders(
    orders: Iterable[Any],
    search: str = "",
    companies: Iterable[str] = (),
    statuses: Iterable[str] = (),
) -> List[Any]:
    needle = (search or "").strip().lower()
    company_set = set(companies or ())
    status_set = set(statuses or ())

    result = []
    for order in orders:
        if needle and not _matches_search(order, needle):
            continue
        if company_set and getattr(order, "selling_company", None) not in company_set:
            continue
        if status_set and getattr(order, "status", None) not in status_set:
            continue
        result.append(order)
    return result


def _column_value(order: Any, column: str) -> Any:
    if column == "progress":
        return progress_ratio(order)
    if column == "total_value":
        return compute_order_economics(order).total_value
    if column == "margin":
        return compute_order_economics(order).margin
    return getattr(order, column, None)


def _sort_key(value: Any):
    """
    Tuple key so mixed types never compare directly.

    Rank 0: None / "" (coerced to empty string), rank 1: numbers, rank 2: dates, rank 3: text.
    """
    if value is None or value == "":
        return (0, "")
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float, Decimal)):
        return (1, value)
    if isinstance(value, datetime):
        return (2, value.date().isoformat(), value.isoformat())
    if isinstance(value, date):
        return (2, value.isoformat(), "")
    return (3, str(value).lower())


def sort_orders(orders: Iterable[Any], column: str | None, direction: str = "asc") -> List[Any]:
    """Stable sort by one column. Unknown columns sort as all-None (order unchanged)."""
    orders = list(orders)
    if not column:
        return orders
    return sorted(
        orders,
        key=lambda order: _sort_key(_column_value(order, column)),
        reverse=(direction or "").lower() == SORT_DESC,
    )
