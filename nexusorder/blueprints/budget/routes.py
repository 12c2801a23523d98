"""
nexusorder/blueprints/budget/routes.py

Monthly budget (P&L planning grid) per company.

Includes:
- budget categories CRUD (admin)
- grid read model + actual order revenue per month + USD equivalents
- cell upsert and "replicate to the right" (Admin / Operaciones)
- monthly exchange rates

IMPORTANT:
- BudgetEntry.amount is always recomputed (quantity × unit_value), never read from the payload.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from flask import Blueprint, jsonify, request

from ...audit import log_action, serialize_model
from ...budget import (
    actual_revenue_by_month,
    build_budget_grid,
    entry_amount,
    month_start,
    months_forward,
    usd_equivalent,
)
from ...extensions import db
from ...models import BUDGET_TYPES, BudgetCategory, BudgetEntry, Company, ExchangeRate, Order
from ...security import admin_required, editor_required, login_required_json
from ...storage import PersistenceError, delete_record, flush_record, read_with_retry, save_record
from ...utils import clean_str, parse_decimal, parse_optional_int

budget_bp = Blueprint("budget", __name__, url_prefix="/budget")

MIN_YEAR = 1
MAX_YEAR = 9999


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


def _error(message: str, status: int = 400):
    return jsonify({"error": message}), status


def _parse_year_month(payload: dict) -> tuple[int, int]:
    year = parse_optional_int(payload.get("year"))
    month = parse_optional_int(payload.get("month"))
    if year is None or month is None or not 1 <= month <= 12:
        raise ValueError("Año o mes inválido.")
    return _check_year(year), month


def _check_year(year: int) -> int:
    if not MIN_YEAR <= year <= MAX_YEAR:
        raise ValueError("Año inválido.")
    return year


def _year_arg() -> int:
    return _check_year(parse_optional_int(request.args.get("year")) or date.today().year)


def _upsert_entry(company_id: int, category_id: int, month_date: date, quantity, unit_value) -> BudgetEntry:
    entry = BudgetEntry.query.filter_by(
        company_id=company_id, category_id=category_id, month_date=month_date
    ).first()
    if entry is None:
        entry = BudgetEntry(company_id=company_id, category_id=category_id, month_date=month_date)
        db.session.add(entry)

    entry.quantity = quantity
    entry.unit_value = unit_value
    entry.amount = entry_amount(quantity, unit_value)
    return entry


# ---------------------------------------------------------------------
# CATEGORIES
# ---------------------------------------------------------------------
@budget_bp.route("/categories", methods=["GET"])
@login_required_json
def list_categories():
    categories = read_with_retry(
        lambda: BudgetCategory.query.order_by(BudgetCategory.order_index.asc(), BudgetCategory.id.asc()).all()
    )
    return jsonify([c.to_dict() for c in categories])


def _apply_category_payload(category: BudgetCategory, payload: dict) -> None:
    if "name" in payload:
        category.name = clean_str(payload.get("name"))
    if "type" in payload:
        category.type = payload.get("type")
    if "order_index" in payload:
        category.order_index = parse_optional_int(payload.get("order_index")) or 0
    if "assigned_company_ids" in payload:
        raw = payload.get("assigned_company_ids") or []
        if not isinstance(raw, list):
            raise ValueError("assigned_company_ids debe ser una lista.")
        category.assigned_company_ids = [cid for cid in (parse_optional_int(v) for v in raw) if cid is not None]

    if not category.name:
        raise ValueError("El nombre es obligatorio.")
    if category.type not in BUDGET_TYPES:
        raise ValueError("Tipo de categoría inválido.")


@budget_bp.route("/categories", methods=["POST"])
@admin_required
def create_category():
    payload = request.get_json(silent=True) or {}
    category = BudgetCategory(order_index=0, assigned_company_ids=[])
    try:
        _apply_category_payload(category, payload)
    except ValueError as exc:
        return _error(str(exc))

    try:
        flush_record(category)
        log_action(category, "CREATE", before=None, after=serialize_model(category))
        save_record()
    except PersistenceError as exc:
        return _error(str(exc), 500)
    return jsonify(category.to_dict()), 201


@budget_bp.route("/categories/<int:category_id>", methods=["PUT"])
@admin_required
def update_category(category_id: int):
    category = BudgetCategory.query.get_or_404(category_id)
    payload = request.get_json(silent=True) or {}
    before_snapshot = serialize_model(category)

    try:
        _apply_category_payload(category, payload)
    except ValueError as exc:
        db.session.rollback()
        return _error(str(exc))

    try:
        log_action(category, "UPDATE", before=before_snapshot, after=serialize_model(category))
        save_record(category)
    except PersistenceError as exc:
        return _error(str(exc), 500)
    return jsonify(category.to_dict())


@budget_bp.route("/categories/<int:category_id>", methods=["DELETE"])
@admin_required
def delete_category(category_id: int):
    category = BudgetCategory.query.get_or_404(category_id)
    log_action(category, "DELETE", before=serialize_model(category), after=None)
    BudgetEntry.query.filter_by(category_id=category.id).delete()
    try:
        delete_record(category)
    except PersistenceError as exc:
        return _error(str(exc), 500)
    return jsonify({"ok": True})


# ---------------------------------------------------------------------
# GRID
# ---------------------------------------------------------------------
@budget_bp.route("/grid", methods=["GET"])
@login_required_json
def grid():
    company_id = parse_optional_int(request.args.get("company_id"))
    try:
        year = _year_arg()
    except ValueError as exc:
        return _error(str(exc))
    if company_id is None:
        return _error("Seleccione una empresa.")

    company = Company.query.get_or_404(company_id)

    categories = read_with_retry(lambda: BudgetCategory.query.all())
    entries = read_with_retry(
        lambda: BudgetEntry.query.filter(
            BudgetEntry.company_id == company.id,
            BudgetEntry.month_date >= date(year, 1, 1),
            BudgetEntry.month_date <= date(year, 12, 31),
        ).all()
    )
    orders = read_with_retry(lambda: Order.query.filter_by(selling_company=company.name).all())
    rates = read_with_retry(lambda: ExchangeRate.query.filter_by(year=year).all())
    rate_by_month = {r.month: r.rate for r in rates}

    result = build_budget_grid(categories, entries, company.id, year)
    result["company"] = company.to_dict()
    result["actual_revenue"] = actual_revenue_by_month(orders, company.name, year)
    result["rates"] = [rate_by_month.get(m) for m in range(1, 13)]
    result["net_result_usd"] = [
        usd_equivalent(amount, rate_by_month.get(m))
        for m, amount in enumerate(result["net_result"], start=1)
    ]
    result["cells"] = [e.to_dict() for e in entries]
    return jsonify(_jsonable(result))


# ---------------------------------------------------------------------
# ENTRIES
# ---------------------------------------------------------------------
def _entry_target(payload: dict) -> tuple[int, int, int, int]:
    company_id = parse_optional_int(payload.get("company_id"))
    category_id = parse_optional_int(payload.get("category_id"))
    if company_id is None or category_id is None:
        raise ValueError("Empresa y categoría son obligatorias.")
    year, month = _parse_year_month(payload)
    Company.query.get_or_404(company_id)
    BudgetCategory.query.get_or_404(category_id)
    return company_id, category_id, year, month


@budget_bp.route("/entries", methods=["PUT"])
@editor_required
def upsert_entry():
    payload = request.get_json(silent=True) or {}
    try:
        company_id, category_id, year, month = _entry_target(payload)
        quantity = parse_decimal(payload.get("quantity"), "quantity") or Decimal("0")
        unit_value = parse_decimal(payload.get("unit_value"), "unit_value") or Decimal("0")
    except ValueError as exc:
        return _error(str(exc))

    entry = _upsert_entry(company_id, category_id, month_start(year, month), quantity, unit_value)
    try:
        save_record(entry)
    except PersistenceError as exc:
        return _error(str(exc), 500)
    return jsonify(entry.to_dict())


@budget_bp.route("/entries/replicate", methods=["POST"])
@editor_required
def replicate_entry():
    """Copy one cell's quantity / unit value to every later month of the same year."""
    payload = request.get_json(silent=True) or {}
    try:
        company_id, category_id, year, month = _entry_target(payload)
    except ValueError as exc:
        return _error(str(exc))

    base = BudgetEntry.query.filter_by(
        company_id=company_id, category_id=category_id, month_date=month_start(year, month)
    ).first()
    quantity = base.quantity if base else Decimal("0")
    unit_value = base.unit_value if base else Decimal("0")

    updated = [
        _upsert_entry(company_id, category_id, target, quantity, unit_value)
        for target in months_forward(year, month)
    ]
    try:
        save_record()
    except PersistenceError as exc:
        return _error(str(exc), 500)
    return jsonify([e.to_dict() for e in updated])


# ---------------------------------------------------------------------
# EXCHANGE RATES
# ---------------------------------------------------------------------
@budget_bp.route("/rates", methods=["GET"])
@login_required_json
def list_rates():
    try:
        year = _year_arg()
    except ValueError as exc:
        return _error(str(exc))
    rates = read_with_retry(lambda: ExchangeRate.query.filter_by(year=year).order_by(ExchangeRate.month.asc()).all())
    return jsonify([r.to_dict() for r in rates])


@budget_bp.route("/rates", methods=["PUT"])
@editor_required
def save_rate():
    payload = request.get_json(silent=True) or {}
    try:
        year, month = _parse_year_month(payload)
        rate = parse_decimal(payload.get("rate"), "rate") or Decimal("0")
    except ValueError as exc:
        return _error(str(exc))
    if rate < 0:
        return _error("El tipo de cambio no puede ser negativo.")

    record = ExchangeRate.query.filter_by(year=year, month=month).first()
    if record is None:
        record = ExchangeRate(year=year, month=month)
    record.rate = rate

    try:
        save_record(record)
    except PersistenceError as exc:
        return _error(str(exc), 500)
    return jsonify(record.to_dict())
