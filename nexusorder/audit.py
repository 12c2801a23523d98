"""
nexusorder/audit.py

Server-side audit trail.

Two layers:
- AuditLog rows (log_action): WHO did WHAT to WHICH entity, with BEFORE/AFTER snapshots + IP.
  Used for master data, users, budget and orders.
- Order history (record_order_change): the business-facing, append-only timeline that
  travels with each order ("Creación", "Edición", "Cambio de Estado", ...).

IMPORTANT:
- Both helpers only ADD rows to the current session. The calling route commits
  (storage.save_record) or rolls back.
- The acting user's name is passed in explicitly to the history helpers.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request
from flask_login import current_user

from .extensions import db
from .models import AuditLog

ACTION_CREATE = "Creación"
ACTION_EDIT = "Edición"
ACTION_STATUS = "Cambio de Estado"
ACTION_PROGRESS = "Avance"
ACTION_ATTACHMENT = "Adjunto"


def _safe_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """Scalar column snapshot (relationships excluded), values as strings."""
    return {
        column.name: _safe_str(getattr(instance, column.name))
        for column in instance.__table__.columns
    }


def log_action(
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Add an AuditLog entry to the current db session.

    Parameters:
        entity: model instance with .id (flush first for new rows)
        action: CREATE / UPDATE / DELETE
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after flush).")

    authenticated = has_request_context() and current_user.is_authenticated
    entry = AuditLog(
        user_id=current_user.id if authenticated else None,
        username_snapshot=current_user.name if authenticated else None,
        entity_type=entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry


def record_order_change(order: Any, user_name: str, previous_status: Optional[str] = None, is_new: bool = False) -> None:
    """
    Append the lifecycle entries for a saved order.

    - new order: one "Creación"
    - edit: one "Edición"; plus "Cambio de Estado" ("A → B") when the status moved
    """
    if is_new:
        order.append_history(user_name, ACTION_CREATE, "Pedido creado")
        return

    order.append_history(user_name, ACTION_EDIT, "Pedido actualizado")
    if previous_status is not None and previous_status != order.status:
        order.append_history(user_name, ACTION_STATUS, f"{previous_status} → {order.status}")
