"""
nexusorder/portfolio.py

Portfolio roll-ups for the dashboard.

Every aggregation is a single reduction (aggregate_by) over the order list; monetary
values come from economics.compute_order_economics so the dashboard, the list and the
export can never disagree.

Empty input -> empty mappings / zero totals.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Hashable, Iterable, List, Tuple

from .economics import HUNDRED, ZERO, compute_order_economics, quantize, to_decimal
from .models import UNASSIGNED_CONTRACTOR, UNKNOWN_CLIENT
from .pricing import to_date

CLOSED_STATUSES = {"Facturado", "Certificado"}
BILLED_STATUS = "Facturado"

TOP_N = 5
FOLLOW_UP_LIMIT = 10
TREND_PERIODS = 6

# Orders without a commitment date go to the bottom of the follow-up list
NO_DEADLINE_RANK = 999


def aggregate_by(
    orders: Iterable[Any],
    key_fn: Callable[[Any], Hashable],
    value_fn: Callable[[Any], Any],
) -> Dict[Hashable, Decimal]:
    """Group-and-sum. Keys keep first-encounter order."""
    totals: Dict[Hashable, Decimal] = {}
    for order in orders:
        key = key_fn(order)
        totals[key] = totals.get(key, ZERO) + to_decimal(value_fn(order))
    return totals


def _revenue(order: Any) -> Decimal:
    return compute_order_economics(order).total_value


def _margin(order: Any) -> Decimal:
    return compute_order_economics(order).margin


def _top(totals: Dict[Hashable, Decimal], limit: int) -> List[Tuple[Hashable, Decimal]]:
    # sorted() is stable: equal margins keep encounter order
    return sorted(totals.items(), key=lambda item: -item[1])[:limit]


def revenue_by_company(orders: Iterable[Any]) -> Dict[Hashable, Decimal]:
    return aggregate_by(orders, lambda o: getattr(o, "selling_company", None), _revenue)


def count_by_status(orders: Iterable[Any]) -> Dict[Hashable, Decimal]:
    return aggregate_by(orders, lambda o: getattr(o, "status", None), lambda o: 1)


def _period_key(order: Any) -> str | None:
    order_date = to_date(getattr(order, "date", None))
    if order_date is None:
        return None
    return f"{order_date.year:04d}-{order_date.month:02d}"


def monthly_revenue_trend(orders: Iterable[Any], periods: int = TREND_PERIODS) -> List[Tuple[str, Decimal]]:
    """Revenue per "YYYY-MM", ascending, last `periods` months that have orders."""
    dated = [o for o in orders if _period_key(o) is not None]
    totals = aggregate_by(dated, _period_key, _revenue)
    ordered = sorted(totals.items(), key=lambda item: item[0])
    if periods <= 0:
        return []
    return ordered[-periods:]


def margin_by_client(orders: Iterable[Any], limit: int = TOP_N) -> List[Tuple[Hashable, Decimal]]:
    totals = aggregate_by(orders, lambda o: getattr(o, "client_name", None) or UNKNOWN_CLIENT, _margin)
    return _top(totals, limit)


def margin_by_service(orders: Iterable[Any], limit: int = TOP_N) -> List[Tuple[Hashable, Decimal]]:
    totals = aggregate_by(orders, lambda o: getattr(o, "service_name", None), _margin)
    return _top(totals, limit)


def _contractor_label(order: Any) -> str:
    if not getattr(order, "contractor_id", None):
        return UNASSIGNED_CONTRACTOR
    return getattr(order, "contractor_name", None) or UNASSIGNED_CONTRACTOR


def margin_by_contractor(orders: Iterable[Any], limit: int = TOP_N) -> List[Tuple[Hashable, Decimal]]:
    totals = aggregate_by(orders, _contractor_label, _margin)
    return _top(totals, limit)


def is_active(order: Any) -> bool:
    return getattr(order, "status", None) not in CLOSED_STATUSES


def _days_left(order: Any, today: date) -> int | None:
    due = to_date(getattr(order, "commitment_date", None))
    if due is None:
        return None
    return (due - today).days


def operational_follow_up(orders: Iterable[Any], today: date, limit: int = FOLLOW_UP_LIMIT) -> List[dict]:
    """Active orders, most urgent commitment first (overdue = negative days_left)."""
    rows = []
    for order in orders:
        if not is_active(order):
            continue
        economics = compute_order_economics(order)
        rows.append(
            {
                "id": getattr(order, "id", None),
                "client": getattr(order, "client_name", None),
                "service": getattr(order, "service_name", None),
                "status": getattr(order, "status", None),
                "rep": getattr(order, "operations_rep", None),
                "percent": economics.progress_percent,
                "days_left": _days_left(order, today),
            }
        )

    rows.sort(key=lambda row: NO_DEADLINE_RANK if row["days_left"] is None else row["days_left"])
    return rows[:limit]


def dashboard_summary(orders: Iterable[Any], today: date | None = None) -> dict:
    """KPI block of the dashboard."""
    orders = list(orders)
    today = today or date.today()

    total_revenue = ZERO
    total_cost = ZERO
    for order in orders:
        economics = compute_order_economics(order)
        total_revenue += economics.total_value
        total_cost += economics.cost

    total_margin = total_revenue - total_cost
    if total_revenue > 0:
        margin_percent = quantize(total_margin / total_revenue * HUNDRED)
    else:
        margin_percent = ZERO

    active = [o for o in orders if is_active(o)]

    return {
        "total_revenue": total_revenue,
        "total_cost": total_cost,
        "total_margin": total_margin,
        "margin_percent": margin_percent,
        "active_count": len(active),
        "billed_count": sum(1 for o in orders if getattr(o, "status", None) == BILLED_STATUS),
        "follow_up": operational_follow_up(active, today),
    }
