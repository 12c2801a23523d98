"""
nexusorder/economics.py

Per-order economics derived from quantity, prices and progress logs.

    total_value      = quantity × unit_price
    cost             = unit_cost × quantity
    margin           = total_value − cost
    margin_percent   = margin / total_value × 100      (0 when total_value <= 0)
    progress_total   = Σ progress_logs.quantity        (never clamped)
    progress_percent = min(100, progress_total / quantity × 100)   (0 when quantity <= 0)

IMPORTANT:
- Rounding (0.01, ROUND_HALF_UP) happens here and nowhere else.
- Legacy records may carry None for unit_cost / quantity / progress_logs; they count as 0 / empty.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")


def to_decimal(value: Any) -> Decimal:
    """None/''/garbage/NaN/Infinity -> 0, everything else through str() to keep float noise out."""
    if value is None or value == "":
        return ZERO
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError):
        return ZERO
    return result if result.is_finite() else ZERO


def quantize(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class OrderEconomics:
    total_value: Decimal
    cost: Decimal
    margin: Decimal
    margin_percent: Decimal
    progress_total: Decimal
    progress_percent: Decimal

    def as_dict(self) -> dict:
        """Float view for JSON / export."""
        return {key: float(value) for key, value in asdict(self).items()}


def _progress_total(order: Any) -> Decimal:
    logs = getattr(order, "progress_logs", None) or []
    total = ZERO
    for log in logs:
        total += to_decimal(getattr(log, "quantity", None))
    return total


def progress_ratio(order: Any) -> Decimal:
    """Unclamped progress_total / quantity (0 when quantity is 0). Shared by sorting and percent."""
    quantity = to_decimal(getattr(order, "quantity", None))
    if quantity <= 0:
        return ZERO
    return _progress_total(order) / quantity


def compute_order_economics(order: Any) -> OrderEconomics:
    quantity = to_decimal(getattr(order, "quantity", None))
    unit_price = to_decimal(getattr(order, "unit_price", None))
    unit_cost = to_decimal(getattr(order, "unit_cost", None))

    total_value = quantity * unit_price
    cost = unit_cost * quantity
    margin = total_value - cost

    if total_value > 0:
        margin_percent = margin / total_value * HUNDRED
    else:
        margin_percent = ZERO

    progress_total = _progress_total(order)
    progress_percent = max(ZERO, min(HUNDRED, progress_ratio(order) * HUNDRED))

    return OrderEconomics(
        total_value=quantize(total_value),
        cost=quantize(cost),
        margin=quantize(margin),
        margin_percent=quantize(margin_percent),
        progress_total=quantize(progress_total),
        progress_percent=quantize(progress_percent),
    )
