"""
nexusorder/budget.py

Monthly P&L planning grid (budget) and budget-vs-actual helpers.

Grid layout per company and year:
- sections: Ingreso, Costo Directo, Costo Indirecto (category.type)
- one row per category: 12 monthly amounts + annual total
- section totals per month, net result per month = income − direct − indirect

Months are 1..12 everywhere in this module. Budget entries are keyed by the first day of the month.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

from .economics import ZERO, compute_order_economics, quantize, to_decimal
from .models import BUDGET_TYPE_DIRECT, BUDGET_TYPE_INCOME, BUDGET_TYPE_INDIRECT, BUDGET_TYPES
from .pricing import to_date

MONTHS = tuple(range(1, 13))


def month_start(year: int, month: int) -> date:
    return date(int(year), int(month), 1)


def entry_amount(quantity: Any, unit_value: Any) -> Decimal:
    return quantize(to_decimal(quantity) * to_decimal(unit_value))


def categories_for_company(categories: Iterable[Any], company_id: Any) -> List[Any]:
    """Unassigned categories apply to all companies; otherwise the company must be listed."""
    result = []
    for category in categories:
        assigned = getattr(category, "assigned_company_ids", None) or []
        if not assigned or str(company_id) in {str(cid) for cid in assigned}:
            result.append(category)
    return sorted(result, key=lambda c: (getattr(c, "order_index", 0) or 0))


def months_forward(year: int, start_month: int) -> List[date]:
    """Month starts AFTER start_month until December (target cells of 'replicate right')."""
    return [month_start(year, m) for m in MONTHS if m > int(start_month)]


def usd_equivalent(amount: Any, rate: Any) -> Optional[Decimal]:
    rate = to_decimal(rate)
    if rate <= 0:
        return None
    return quantize(to_decimal(amount) / rate)


def _amount_index(entries: Iterable[Any], company_id: Any, year: int) -> Dict[tuple, Decimal]:
    index: Dict[tuple, Decimal] = {}
    for entry in entries:
        if str(getattr(entry, "company_id", None)) != str(company_id):
            continue
        month_date = to_date(getattr(entry, "month_date", None))
        if month_date is None or month_date.year != int(year):
            continue
        amount = getattr(entry, "amount", None)
        if amount is None:
            amount = entry_amount(getattr(entry, "quantity", None), getattr(entry, "unit_value", None))
        key = (str(getattr(entry, "category_id", None)), month_date.month)
        index[key] = index.get(key, ZERO) + to_decimal(amount)
    return index


def build_budget_grid(
    categories: Iterable[Any],
    entries: Iterable[Any],
    company_id: Any,
    year: int,
) -> dict:
    """
    Build the read model of the budget screen.

    Returns:
        {
          "year": 2024,
          "sections": {
             "Ingreso": {"rows": [{"category_id", "name", "months": [12], "total"}],
                         "monthly_totals": [12], "total": Decimal},
             ...
          },
          "net_result": [12],
          "net_total": Decimal,
        }
    """
    amounts = _amount_index(entries, company_id, year)
    sections: Dict[str, dict] = {
        t: {"rows": [], "monthly_totals": [ZERO] * 12, "total": ZERO} for t in BUDGET_TYPES
    }

    for category in categories_for_company(categories, company_id):
        section = sections.get(getattr(category, "type", None))
        if section is None:
            continue

        cat_key = str(getattr(category, "id", None))
        months = [amounts.get((cat_key, m), ZERO) for m in MONTHS]
        row_total = sum(months, ZERO)

        section["rows"].append(
            {
                "category_id": getattr(category, "id", None),
                "name": getattr(category, "name", None),
                "months": months,
                "total": row_total,
            }
        )
        section["monthly_totals"] = [a + b for a, b in zip(section["monthly_totals"], months)]
        section["total"] += row_total

    income = sections[BUDGET_TYPE_INCOME]["monthly_totals"]
    direct = sections[BUDGET_TYPE_DIRECT]["monthly_totals"]
    indirect = sections[BUDGET_TYPE_INDIRECT]["monthly_totals"]
    net = [i - d - x for i, d, x in zip(income, direct, indirect)]

    return {
        "year": int(year),
        "sections": sections,
        "net_result": net,
        "net_total": sum(net, ZERO),
    }


def actual_revenue_by_month(orders: Iterable[Any], company_name: str, year: int) -> List[Decimal]:
    """Order revenue per month (index 0 = January) for one selling company."""
    totals = [ZERO] * 12
    for order in orders:
        if getattr(order, "selling_company", None) != company_name:
            continue
        order_date = to_date(getattr(order, "date", None))
        if order_date is None or order_date.year != int(year):
            continue
        totals[order_date.month - 1] += compute_order_economics(order).total_value
    return totals
