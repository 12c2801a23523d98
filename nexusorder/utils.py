"""
Utility functions shared across the blueprints:
- resolve_status: validate an order status against the configured workflow.
- parse_* helpers: tolerant conversion of JSON payload values.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from .models import WorkflowStatus
from .pricing import to_date


def get_workflow_names() -> list[str]:
    """Configured status names, pipeline order."""
    statuses = WorkflowStatus.query.order_by(WorkflowStatus.sort_order.asc(), WorkflowStatus.id.asc()).all()
    return [s.name for s in statuses]


def resolve_status(candidate: Optional[str]) -> Optional[str]:
    """
    Return candidate if it is a configured status, otherwise the first configured one.

    With no workflow configured the candidate is kept as-is.
    """
    names = get_workflow_names()
    if not names:
        return candidate
    if candidate in names:
        return candidate
    return names[0]


def parse_optional_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return int(text)
    except ValueError:
        return None


def parse_decimal(value: Any, field: str, *, required: bool = False) -> Optional[Decimal]:
    """
    Parse a money / quantity value. Accepts numbers and strings ("1.234,50" style too).

    Raises ValueError with a user-facing message on garbage.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValueError(f"El campo '{field}' es obligatorio.")
        return None
    if isinstance(value, bool):
        raise ValueError(f"Valor inválido para '{field}'.")
    if isinstance(value, (int, float, Decimal)):
        result = Decimal(str(value))
    else:
        text = str(value).strip().replace(" ", "")
        if "," in text and "." in text:
            text = text.replace(".", "").replace(",", ".")
        elif "," in text:
            text = text.replace(",", ".")
        try:
            result = Decimal(text)
        except InvalidOperation:
            raise ValueError(f"Valor inválido para '{field}'.")

    # finite values only (NaN / Infinity rejected)
    if not result.is_finite():
        raise ValueError(f"Valor inválido para '{field}'.")
    return result


def parse_optional_date(value: Any, field: str) -> Optional[date]:
    if value is None or value == "":
        return None
    parsed = to_date(value)
    if parsed is None:
        raise ValueError(f"Fecha inválida para '{field}'.")
    return parsed


def clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
