"""
nexusorder/pricing.py

Price resolution for draft orders.

Rules (an entry is eligible iff ALL hold):
1) entry.selling_company == context.selling_company (exact)
2) entry.client_id set  -> must equal context.client_id; unset -> generic, passes
3) contractor excluded only when BOTH sides are set AND differ
4) entry.valid_from <= as_of_date <= entry.valid_to (inclusive)

IMPORTANT:
- Pure functions, no session access. Callers pass the catalog in (e.g. PriceListEntry.query.all()).
- Catalog order is preserved; auto-fill is first-match-wins on service name.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, List, Optional


@dataclass(frozen=True)
class PriceContext:
    """Draft-order fields that scope the price list."""

    selling_company: str
    as_of_date: Any
    client_id: Optional[int] = None
    contractor_id: Optional[int] = None


def to_date(value: Any) -> Optional[date]:
    """Accept date / datetime / ISO string ("2024-06-01" or full timestamp)."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def _is_set(value: Any) -> bool:
    return value is not None and value != ""


def _same_id(a: Any, b: Any) -> bool:
    return str(a) == str(b)


def is_eligible(entry: Any, context: PriceContext) -> bool:
    """Single-entry form of the eligibility rules."""
    if getattr(entry, "selling_company", None) != context.selling_company:
        return False

    entry_client = getattr(entry, "client_id", None)
    if _is_set(entry_client) and not _same_id(entry_client, context.client_id):
        return False

    entry_contractor = getattr(entry, "contractor_id", None)
    if (
        _is_set(entry_contractor)
        and _is_set(context.contractor_id)
        and not _same_id(entry_contractor, context.contractor_id)
    ):
        return False

    as_of = to_date(context.as_of_date)
    valid_from = to_date(getattr(entry, "valid_from", None))
    valid_to = to_date(getattr(entry, "valid_to", None))
    if as_of is None or valid_from is None or valid_to is None:
        return False

    return valid_from <= as_of <= valid_to


def resolve_eligible_prices(catalog: Iterable[Any], context: PriceContext) -> List[Any]:
    """Return the catalog entries usable for this draft, in catalog order (may be empty)."""
    return [entry for entry in catalog if is_eligible(entry, context)]


def find_price_for_service(eligible: Iterable[Any], service_name: str) -> Optional[Any]:
    """First entry whose service_name matches exactly, or None."""
    if not service_name:
        return None
    for entry in eligible:
        if getattr(entry, "service_name", None) == service_name:
            return entry
    return None


def autofill_from_price(draft: dict, entry: Any) -> dict:
    """
    Copy price data from a price entry into a draft order dict.

    Returns a NEW dict. contractor_id is only overwritten when the entry names a contractor.
    """
    filled = dict(draft)
    filled["unit_price"] = Decimal(str(getattr(entry, "unit_price", None) or 0))
    filled["unit_cost"] = Decimal(str(getattr(entry, "contractor_cost", None) or 0))
    filled["unit_of_measure"] = getattr(entry, "unit_of_measure", None)

    contractor_id = getattr(entry, "contractor_id", None)
    if _is_set(contractor_id):
        filled["contractor_id"] = contractor_id
    return filled
