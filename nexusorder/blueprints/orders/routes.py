"""
nexusorder/blueprints/orders/routes.py

Order routes (JSON).

Includes:
- list (search + company/status filters + single-column sort), detail, create, update, delete
- progress logs and attachments owned by an order
- eligible prices for a draft context, AI smart assist
- spreadsheet export and single-order PDF

IMPORTANT:
- total_value is never read from the payload; Order.recalc_totals() derives it.
- Saves rebuild the whole record: payload values first, stored values for omitted fields.
- Price auto-fill only fills fields the caller did not send.
"""

from __future__ import annotations

import io
from datetime import date

from flask import Blueprint, current_app, jsonify, request, send_file
from flask_login import current_user

from ...ai_assist import analyze_text_for_order, apply_suggestion
from ...audit import (
    ACTION_ATTACHMENT,
    ACTION_PROGRESS,
    log_action,
    record_order_change,
    serialize_model,
)
from ...economics import compute_order_economics
from ...exports import build_order_pdf, build_orders_workbook
from ...listing import filter_orders, sort_orders
from ...models import (
    UNASSIGNED_CONTRACTOR,
    Attachment,
    Client,
    Contractor,
    Order,
    PriceListEntry,
    ProgressLogEntry,
)
from ...pricing import PriceContext, autofill_from_price, find_price_for_service, resolve_eligible_prices
from ...security import editor_required, login_required_json
from ...storage import PersistenceError, delete_record, flush_record, read_with_retry, save_record
from ...utils import clean_str, parse_decimal, parse_optional_date, parse_optional_int, resolve_status

orders_bp = Blueprint("orders", __name__, url_prefix="/orders")

PRICE_FIELDS = ("unit_price", "unit_cost", "unit_of_measure", "contractor_id")

TEXT_FIELDS = (
    "po_number",
    "service_details",
    "operations_rep",
    "observations",
)

DATE_FIELDS = ("commitment_date", "client_cert_date", "billing_date")


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _bad_request(message: str):
    return jsonify({"error": message}), 400


def _persistence_failed(exc: PersistenceError):
    return jsonify({"error": str(exc)}), 500


def _user_name() -> str:
    return current_user.name if current_user.is_authenticated else "Sistema"


def _load_orders():
    return read_with_retry(lambda: Order.query.order_by(Order.date.desc(), Order.id.desc()).all())


def _load_price_catalog():
    return read_with_retry(lambda: PriceListEntry.query.order_by(PriceListEntry.id.asc()).all())


def _listed_orders():
    """Apply query-string filters and sort shared by the list and the export."""
    orders = filter_orders(
        _load_orders(),
        search=request.args.get("q", ""),
        companies=request.args.getlist("company"),
        statuses=request.args.getlist("status"),
    )
    return sort_orders(orders, request.args.get("sort"), request.args.get("direction", "asc"))


def _autofill_prices(draft: dict, payload: dict) -> dict:
    """Fill price fields the payload left out from the first matching price entry."""
    if all(field in payload for field in PRICE_FIELDS):
        return draft

    context = PriceContext(
        selling_company=draft.get("selling_company"),
        client_id=draft.get("client_id"),
        contractor_id=draft.get("contractor_id"),
        as_of_date=draft.get("date"),
    )
    match = find_price_for_service(
        resolve_eligible_prices(_load_price_catalog(), context),
        draft.get("service_name"),
    )
    if match is None:
        return draft

    filled = autofill_from_price(draft, match)
    for field in PRICE_FIELDS:
        if field in payload:
            filled[field] = draft.get(field)
    return filled


def _build_draft(order: Order, payload: dict, is_new: bool) -> dict:
    """
    Whole-record draft: payload value when sent, stored value otherwise.

    Raises ValueError with a user-facing message.
    """

    def pick(field, parser=None, default=None):
        if field in payload:
            return parser(payload[field]) if parser else payload[field]
        current = getattr(order, field, None)
        return current if current is not None else default

    draft = {
        "date": pick("date", lambda v: parse_optional_date(v, "date"), date.today()) or date.today(),
        "selling_company": clean_str(pick("selling_company")),
        "budget_category_id": pick("budget_category_id", parse_optional_int),
        "client_id": pick("client_id", parse_optional_int),
        "client_name": clean_str(pick("client_name")),
        "contractor_id": pick("contractor_id", parse_optional_int),
        "service_name": clean_str(pick("service_name")),
        "unit_of_measure": clean_str(pick("unit_of_measure")),
        "quantity": pick("quantity", lambda v: parse_decimal(v, "quantity")),
        "unit_price": pick("unit_price", lambda v: parse_decimal(v, "unit_price")),
        "unit_cost": pick("unit_cost", lambda v: parse_decimal(v, "unit_cost")),
        "status": clean_str(pick("status")),
    }
    for field in TEXT_FIELDS:
        draft[field] = clean_str(pick(field))
    for field in DATE_FIELDS:
        draft[field] = pick(field, lambda v, f=field: parse_optional_date(v, f))

    if not draft["selling_company"]:
        raise ValueError("La empresa vendedora es obligatoria.")
    if not draft["service_name"]:
        raise ValueError("El servicio es obligatorio.")

    if is_new or "service_name" in payload or "selling_company" in payload:
        draft = _autofill_prices(draft, payload)

    if draft["quantity"] is None:
        draft["quantity"] = 1
    if draft["unit_price"] is None:
        draft["unit_price"] = 0
    return draft


def _apply_draft(order: Order, draft: dict) -> None:
    client = Client.query.get(draft["client_id"]) if draft["client_id"] else None
    contractor = Contractor.query.get(draft["contractor_id"]) if draft["contractor_id"] else None

    for field, value in draft.items():
        setattr(order, field, value)

    if client is not None:
        order.client_name = client.name
    elif draft["client_id"]:
        order.client_id = None

    if contractor is not None:
        order.contractor_name = contractor.name
    else:
        order.contractor_id = None
        order.contractor_name = UNASSIGNED_CONTRACTOR

    order.status = resolve_status(draft["status"])
    order.recalc_totals()


# ---------------------------------------------------------------------
# LIST / DETAIL
# ---------------------------------------------------------------------
@orders_bp.route("/", methods=["GET"])
@login_required_json
def list_orders():
    orders = _listed_orders()
    return jsonify([o.to_dict(include_children=False) for o in orders])


@orders_bp.route("/<int:order_id>", methods=["GET"])
@login_required_json
def get_order(order_id: int):
    order = Order.query.get_or_404(order_id)
    return jsonify(order.to_dict())


# ---------------------------------------------------------------------
# CREATE / UPDATE / DELETE
# ---------------------------------------------------------------------
@orders_bp.route("/", methods=["POST"])
@editor_required
def create_order():
    payload = request.get_json(silent=True) or {}
    order = Order()
    try:
        draft = _build_draft(order, payload, is_new=True)
    except ValueError as exc:
        return _bad_request(str(exc))

    _apply_draft(order, draft)
    record_order_change(order, _user_name(), is_new=True)

    try:
        flush_record(order)
        log_action(order, "CREATE", before=None, after=serialize_model(order))
        save_record()
    except PersistenceError as exc:
        return _persistence_failed(exc)

    current_app.logger.info("Order %s created by %s", order.id, _user_name())
    return jsonify(order.to_dict()), 201


@orders_bp.route("/<int:order_id>", methods=["PUT"])
@editor_required
def update_order(order_id: int):
    order = Order.query.get_or_404(order_id)
    payload = request.get_json(silent=True) or {}

    before_snapshot = serialize_model(order)
    previous_status = order.status

    try:
        draft = _build_draft(order, payload, is_new=False)
    except ValueError as exc:
        return _bad_request(str(exc))

    _apply_draft(order, draft)
    record_order_change(order, _user_name(), previous_status=previous_status)

    try:
        log_action(order, "UPDATE", before=before_snapshot, after=serialize_model(order))
        save_record(order)
    except PersistenceError as exc:
        return _persistence_failed(exc)

    return jsonify(order.to_dict())


@orders_bp.route("/<int:order_id>", methods=["DELETE"])
@editor_required
def delete_order(order_id: int):
    order = Order.query.get_or_404(order_id)
    log_action(order, "DELETE", before=serialize_model(order), after=None)
    try:
        delete_record(order)
    except PersistenceError as exc:
        return _persistence_failed(exc)
    return jsonify({"ok": True})


# ---------------------------------------------------------------------
# PROGRESS LOGS
# ---------------------------------------------------------------------
def _apply_progress_payload(log: ProgressLogEntry, payload: dict) -> None:
    if "date" in payload or log.date is None:
        log.date = parse_optional_date(payload.get("date"), "date") or date.today()
    if "quantity" in payload or log.quantity is None:
        log.quantity = parse_decimal(payload.get("quantity"), "quantity", required=True)
        if log.quantity <= 0:
            raise ValueError("La cantidad de avance debe ser mayor a 0.")
    if "certification_date" in payload:
        log.certification_date = parse_optional_date(payload.get("certification_date"), "certification_date")
    if "billing_date" in payload:
        log.billing_date = parse_optional_date(payload.get("billing_date"), "billing_date")
    if "notes" in payload:
        log.notes = clean_str(payload.get("notes"))


@orders_bp.route("/<int:order_id>/progress", methods=["POST"])
@editor_required
def add_progress(order_id: int):
    order = Order.query.get_or_404(order_id)
    payload = request.get_json(silent=True) or {}

    log = ProgressLogEntry(user=_user_name())
    try:
        _apply_progress_payload(log, payload)
    except ValueError as exc:
        return _bad_request(str(exc))

    order.progress_logs.append(log)
    order.append_history(_user_name(), ACTION_PROGRESS, f"Avance registrado: {log.quantity} {order.unit_of_measure or ''}".strip())

    try:
        save_record(order)
    except PersistenceError as exc:
        return _persistence_failed(exc)
    return jsonify(order.to_dict()), 201


@orders_bp.route("/<int:order_id>/progress/<int:log_id>", methods=["PUT"])
@editor_required
def update_progress(order_id: int, log_id: int):
    order = Order.query.get_or_404(order_id)
    log = ProgressLogEntry.query.filter_by(id=log_id, order_id=order.id).first_or_404()
    payload = request.get_json(silent=True) or {}

    try:
        _apply_progress_payload(log, payload)
    except ValueError as exc:
        return _bad_request(str(exc))

    order.append_history(_user_name(), ACTION_PROGRESS, f"Avance actualizado: {log.quantity}")
    try:
        save_record(order)
    except PersistenceError as exc:
        return _persistence_failed(exc)
    return jsonify(order.to_dict())


@orders_bp.route("/<int:order_id>/progress/<int:log_id>", methods=["DELETE"])
@editor_required
def delete_progress(order_id: int, log_id: int):
    order = Order.query.get_or_404(order_id)
    log = ProgressLogEntry.query.filter_by(id=log_id, order_id=order.id).first_or_404()

    order.progress_logs.remove(log)
    order.append_history(_user_name(), ACTION_PROGRESS, f"Avance eliminado: {log.quantity}")
    try:
        save_record(order)
    except PersistenceError as exc:
        return _persistence_failed(exc)
    return jsonify(order.to_dict())


# ---------------------------------------------------------------------
# ATTACHMENTS
# ---------------------------------------------------------------------
@orders_bp.route("/<int:order_id>/attachments", methods=["POST"])
@editor_required
def add_attachment(order_id: int):
    order = Order.query.get_or_404(order_id)
    payload = request.get_json(silent=True) or {}

    name = clean_str(payload.get("name"))
    url = clean_str(payload.get("url"))
    if not name or not url:
        return _bad_request("Nombre y enlace del adjunto son obligatorios.")

    order.attachments.append(Attachment(name=name, url=url, date=date.today()))
    order.append_history(_user_name(), ACTION_ATTACHMENT, f"Adjunto agregado: {name}")
    try:
        save_record(order)
    except PersistenceError as exc:
        return _persistence_failed(exc)
    return jsonify(order.to_dict()), 201


@orders_bp.route("/<int:order_id>/attachments/<int:attachment_id>", methods=["DELETE"])
@editor_required
def delete_attachment(order_id: int, attachment_id: int):
    order = Order.query.get_or_404(order_id)
    attachment = Attachment.query.filter_by(id=attachment_id, order_id=order.id).first_or_404()

    order.attachments.remove(attachment)
    order.append_history(_user_name(), ACTION_ATTACHMENT, f"Adjunto eliminado: {attachment.name}")
    try:
        save_record(order)
    except PersistenceError as exc:
        return _persistence_failed(exc)
    return jsonify(order.to_dict())


# ---------------------------------------------------------------------
# PRICES / AI ASSIST
# ---------------------------------------------------------------------
@orders_bp.route("/prices", methods=["GET"])
@login_required_json
def eligible_prices():
    """
    Eligible price entries for a draft context.

    Query: selling_company (required), client_id, contractor_id, date (default today), service_name.
    """
    selling_company = clean_str(request.args.get("selling_company"))
    if not selling_company:
        return _bad_request("La empresa vendedora es obligatoria.")

    try:
        as_of = parse_optional_date(request.args.get("date"), "date") or date.today()
    except ValueError as exc:
        return _bad_request(str(exc))

    context = PriceContext(
        selling_company=selling_company,
        client_id=parse_optional_int(request.args.get("client_id")),
        contractor_id=parse_optional_int(request.args.get("contractor_id")),
        as_of_date=as_of,
    )
    eligible = resolve_eligible_prices(_load_price_catalog(), context)
    match = find_price_for_service(eligible, clean_str(request.args.get("service_name")) or "")

    return jsonify(
        {
            "eligible": [p.to_dict() for p in eligible],
            "match": match.to_dict() if match else None,
        }
    )


@orders_bp.route("/ai-assist", methods=["POST"])
@editor_required
def ai_assist():
    payload = request.get_json(silent=True) or {}
    text = clean_str(payload.get("text"))
    if not text:
        return _bad_request("Ingrese el texto a analizar.")

    draft = payload.get("draft") or {}
    suggestion = analyze_text_for_order(text)
    if suggestion is None:
        # no suggestion: the user keeps filling the draft by hand
        return jsonify({"suggestion": None, "draft": draft})

    clients = read_with_retry(lambda: Client.query.order_by(Client.name.asc()).all())
    draft = apply_suggestion(draft, suggestion, clients)
    return jsonify({"suggestion": suggestion, "draft": draft})


# ---------------------------------------------------------------------
# EXPORT / PDF
# ---------------------------------------------------------------------
@orders_bp.route("/export.xlsx", methods=["GET"])
@login_required_json
def export_orders():
    content = build_orders_workbook(_listed_orders())
    filename = f"{current_app.config['EXPORT_FILENAME_PREFIX']}_{date.today().isoformat()}.xlsx"
    return send_file(
        io.BytesIO(content),
        mimetype="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        as_attachment=True,
        download_name=filename,
    )


@orders_bp.route("/<int:order_id>/pdf", methods=["GET"])
@login_required_json
def order_pdf(order_id: int):
    order = Order.query.get_or_404(order_id)
    content = build_order_pdf(order, app_name=current_app.config.get("APP_NAME", "NexusOrder"))
    return send_file(
        io.BytesIO(content),
        mimetype="application/pdf",
        as_attachment=True,
        download_name=f"Pedido_{order.id}.pdf",
    )


@orders_bp.route("/<int:order_id>/economics", methods=["GET"])
@login_required_json
def order_economics(order_id: int):
    order = Order.query.get_or_404(order_id)
    return jsonify(compute_order_economics(order).as_dict())
