"""
nexusorder/blueprints/settings/routes.py

Settings & Master Data routes (JSON).

Scope (one resource key per table):
- companies, clients, contractors, units, services, statuses (workflow), prices (price list)
- backup: JSON dump of master data and orders

SECURITY:
- Reads: any logged-in user (order forms need the dropdowns).
- Writes: admin-only. The global Lector guard also blocks mutating requests.

AUDIT:
- CREATE/UPDATE/DELETE for master data is audited via audit.log_action.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple

from flask import Blueprint, abort, current_app, jsonify, request

from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import (
    BudgetCategory,
    Client,
    Company,
    Contractor,
    ExchangeRate,
    Order,
    PriceListEntry,
    ServiceCatalogItem,
    UnitOfMeasure,
    User,
    WorkflowStatus,
)
from ...security import admin_required, login_required_json
from ...storage import PersistenceError, delete_record, flush_record, read_with_retry, save_record
from ...utils import clean_str, parse_decimal, parse_optional_date, parse_optional_int

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")


# ----------------------------------------------------------------------
# Resource registry
# ----------------------------------------------------------------------
@dataclass(frozen=True)
class Resource:
    model: Any
    fields: Dict[str, Callable[[Any], Any]]
    required: Tuple[str, ...] = ("name",)
    unique: Optional[str] = None
    order_by: Callable[[Any], Any] = field(default=lambda m: m.id.asc())


def _money_field(name: str) -> Callable[[Any], Any]:
    return lambda value: parse_decimal(value, name)


def _date_field(name: str) -> Callable[[Any], Any]:
    return lambda value: parse_optional_date(value, name)


RESOURCES: Dict[str, Resource] = {
    "companies": Resource(
        model=Company,
        fields={"name": clean_str},
        unique="name",
        order_by=lambda m: m.name.asc(),
    ),
    "clients": Resource(
        model=Client,
        fields={"name": clean_str, "tax_id": clean_str, "contact_name": clean_str},
        order_by=lambda m: m.name.asc(),
    ),
    "contractors": Resource(
        model=Contractor,
        fields={"name": clean_str, "specialty": clean_str, "company": clean_str},
        order_by=lambda m: m.name.asc(),
    ),
    "units": Resource(
        model=UnitOfMeasure,
        fields={"name": clean_str},
        unique="name",
        order_by=lambda m: m.name.asc(),
    ),
    "services": Resource(
        model=ServiceCatalogItem,
        fields={"name": clean_str, "category": clean_str},
        unique="name",
        order_by=lambda m: m.name.asc(),
    ),
    "statuses": Resource(
        model=WorkflowStatus,
        fields={"name": clean_str, "color": clean_str, "sort_order": parse_optional_int},
        unique="name",
        order_by=lambda m: m.sort_order.asc(),
    ),
    "prices": Resource(
        model=PriceListEntry,
        fields={
            "service_name": clean_str,
            "selling_company": clean_str,
            "contractor_id": parse_optional_int,
            "client_id": parse_optional_int,
            "unit_of_measure": clean_str,
            "unit_price": _money_field("unit_price"),
            "contractor_cost": _money_field("contractor_cost"),
            "valid_from": _date_field("valid_from"),
            "valid_to": _date_field("valid_to"),
        },
        required=("service_name", "selling_company", "unit_price", "valid_from", "valid_to"),
    ),
}


# ----------------------------------------------------------------------
# Helpers
# ----------------------------------------------------------------------
def _resource_or_404(key: str) -> Resource:
    resource = RESOURCES.get(key)
    if resource is None:
        abort(404)
    return resource


def _apply_payload(resource: Resource, instance: Any, payload: dict) -> None:
    """Copy known fields from payload; raises ValueError with a user-facing message."""
    for name, parser in resource.fields.items():
        if name in payload:
            setattr(instance, name, parser(payload[name]))

    for name in resource.required:
        if getattr(instance, name, None) in (None, ""):
            raise ValueError(f"El campo '{name}' es obligatorio.")

    if resource.model is PriceListEntry:
        if instance.contractor_cost is None:
            instance.contractor_cost = 0
        if instance.valid_from > instance.valid_to:
            raise ValueError("La vigencia 'desde' no puede ser posterior a 'hasta'.")

    if resource.model is WorkflowStatus and instance.sort_order is None:
        last = WorkflowStatus.query.order_by(WorkflowStatus.sort_order.desc()).first()
        instance.sort_order = (last.sort_order + 1) if last else 1


def _duplicate(resource: Resource, instance: Any) -> bool:
    if not resource.unique:
        return False
    column = getattr(resource.model, resource.unique)
    with db.session.no_autoflush:
        query = resource.model.query.filter(column == getattr(instance, resource.unique))
        if instance.id is not None:
            query = query.filter(resource.model.id != instance.id)
        return query.first() is not None


# ----------------------------------------------------------------------
# Generic CRUD
# ----------------------------------------------------------------------
@settings_bp.route("/<string:resource_key>", methods=["GET"])
@login_required_json
def list_items(resource_key: str):
    resource = _resource_or_404(resource_key)
    model = resource.model
    items = read_with_retry(lambda: model.query.order_by(resource.order_by(model)).all())
    return jsonify([item.to_dict() for item in items])


@settings_bp.route("/<string:resource_key>", methods=["POST"])
@admin_required
def create_item(resource_key: str):
    resource = _resource_or_404(resource_key)
    payload = request.get_json(silent=True) or {}

    instance = resource.model()
    try:
        _apply_payload(resource, instance, payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if _duplicate(resource, instance):
        return jsonify({"error": "Ya existe un registro con ese nombre."}), 409

    try:
        flush_record(instance)
        log_action(instance, "CREATE", before=None, after=serialize_model(instance))
        save_record()
    except PersistenceError as exc:
        return jsonify({"error": str(exc)}), 500

    return jsonify(instance.to_dict()), 201


@settings_bp.route("/<string:resource_key>/<int:item_id>", methods=["PUT"])
@admin_required
def update_item(resource_key: str, item_id: int):
    resource = _resource_or_404(resource_key)
    instance = resource.model.query.get_or_404(item_id)
    payload = request.get_json(silent=True) or {}

    before_snapshot = serialize_model(instance)
    try:
        _apply_payload(resource, instance, payload)
    except ValueError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400

    if _duplicate(resource, instance):
        db.session.rollback()
        return jsonify({"error": "Ya existe un registro con ese nombre."}), 409

    try:
        log_action(instance, "UPDATE", before=before_snapshot, after=serialize_model(instance))
        save_record(instance)
    except PersistenceError as exc:
        return jsonify({"error": str(exc)}), 500

    return jsonify(instance.to_dict())


@settings_bp.route("/<string:resource_key>/<int:item_id>", methods=["DELETE"])
@admin_required
def delete_item(resource_key: str, item_id: int):
    resource = _resource_or_404(resource_key)
    instance = resource.model.query.get_or_404(item_id)

    log_action(instance, "DELETE", before=serialize_model(instance), after=None)
    try:
        delete_record(instance)
    except PersistenceError as exc:
        return jsonify({"error": str(exc)}), 500
    return jsonify({"ok": True})


# ----------------------------------------------------------------------
# BACKUP (admin-only)
# ----------------------------------------------------------------------
@settings_bp.route("/backup", methods=["GET"])
@admin_required
def backup():
    """Full JSON snapshot of master data, budget and orders."""
    data = {
        "app": current_app.config.get("APP_NAME"),
        "generated_at": datetime.utcnow().isoformat(),
    }
    for key, resource in RESOURCES.items():
        model = resource.model
        data[key] = [item.to_dict() for item in read_with_retry(lambda m=model: m.query.all())]

    data["users"] = [u.to_dict() for u in read_with_retry(lambda: User.query.all())]
    data["budget_categories"] = [c.to_dict() for c in read_with_retry(lambda: BudgetCategory.query.all())]
    data["exchange_rates"] = [r.to_dict() for r in read_with_retry(lambda: ExchangeRate.query.all())]
    data["orders"] = [o.to_dict() for o in read_with_retry(lambda: Order.query.all())]

    response = jsonify(data)
    response.headers["Content-Disposition"] = (
        f"attachment; filename=nexus_backup_{datetime.utcnow().date().isoformat()}.json"
    )
    return response
