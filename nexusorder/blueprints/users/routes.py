"""
User Management (Admin Only).

Rules enforced server-side:
- name is unique; role must be one of Admin / Operaciones / Lector.
- access_code is write-only: stored hashed, never returned. Empty string clears it
  (user falls back to DEFAULT_ACCESS_CODE).
- An admin cannot delete or deactivate their own account.

Audit:
- CREATE / UPDATE / DELETE logged (hash excluded from snapshots).
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user

from ...audit import log_action, serialize_model
from ...extensions import db
from ...models import ROLES, User
from ...security import admin_required
from ...storage import PersistenceError, delete_record, flush_record, read_with_retry, save_record
from ...utils import clean_str

users_bp = Blueprint("users", __name__, url_prefix="/users")


def _snapshot(user: User) -> dict:
    data = serialize_model(user)
    data.pop("access_code_hash", None)
    return data


def _initials(name: str) -> str:
    return "".join(part[0] for part in name.split()[:2]).upper()


def _apply_user_payload(user: User, payload: dict) -> None:
    if "name" in payload:
        user.name = clean_str(payload.get("name"))
    if not user.name:
        raise ValueError("El nombre es obligatorio.")

    if "role" in payload:
        user.role = payload.get("role")
    if user.role not in ROLES:
        raise ValueError("Rol inválido.")

    if "initials" in payload:
        user.initials = clean_str(payload.get("initials"))
    if not user.initials:
        user.initials = _initials(user.name)

    if "is_active" in payload:
        user.is_active = bool(payload.get("is_active"))

    if "access_code" in payload:
        user.set_access_code(clean_str(payload.get("access_code")))


def _name_taken(name: str, exclude_id=None) -> bool:
    with db.session.no_autoflush:
        query = User.query.filter(User.name == name)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        return query.first() is not None


@users_bp.route("/", methods=["GET"])
@admin_required
def list_users():
    users = read_with_retry(lambda: User.query.order_by(User.name.asc()).all())
    return jsonify([u.to_dict() for u in users])


@users_bp.route("/", methods=["POST"])
@admin_required
def create_user():
    payload = request.get_json(silent=True) or {}
    user = User(role=payload.get("role") or "", is_active=True)
    try:
        _apply_user_payload(user, payload)
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    if _name_taken(user.name):
        return jsonify({"error": "Ya existe un usuario con ese nombre."}), 409

    try:
        flush_record(user)
        log_action(user, "CREATE", before=None, after=_snapshot(user))
        save_record()
    except PersistenceError as exc:
        return jsonify({"error": str(exc)}), 500

    return jsonify(user.to_dict()), 201


@users_bp.route("/<int:user_id>", methods=["PUT"])
@admin_required
def update_user(user_id: int):
    user = User.query.get_or_404(user_id)
    payload = request.get_json(silent=True) or {}
    before_snapshot = _snapshot(user)

    try:
        _apply_user_payload(user, payload)
    except ValueError as exc:
        db.session.rollback()
        return jsonify({"error": str(exc)}), 400

    if user.id == current_user.id and not user.is_active:
        db.session.rollback()
        return jsonify({"error": "No puede desactivar su propio usuario."}), 400

    if _name_taken(user.name, exclude_id=user.id):
        db.session.rollback()
        return jsonify({"error": "Ya existe un usuario con ese nombre."}), 409

    try:
        log_action(user, "UPDATE", before=before_snapshot, after=_snapshot(user))
        save_record(user)
    except PersistenceError as exc:
        return jsonify({"error": str(exc)}), 500

    return jsonify(user.to_dict())


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@admin_required
def delete_user(user_id: int):
    user = User.query.get_or_404(user_id)
    if user.id == current_user.id:
        return jsonify({"error": "No puede eliminar su propio usuario."}), 400

    log_action(user, "DELETE", before=_snapshot(user), after=None)
    try:
        delete_record(user)
    except PersistenceError as exc:
        return jsonify({"error": str(exc)}), 500
    return jsonify({"ok": True})
