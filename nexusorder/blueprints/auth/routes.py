"""
Authentication Routes

Provides:
- GET  /auth/users       (login picker: active users, no secrets)
- POST /auth/login       {user_id, access_code}
- POST /auth/logout
- GET  /auth/me
- GET  /auth/csrf-token  (JSON clients send it back as X-CSRFToken)

Rules:
- Only active users may log in.
- Users without a personal PIN use DEFAULT_ACCESS_CODE.
"""

import logging

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...extensions import db
from ...models import User
from ...security import login_required_json
from ...utils import parse_optional_int

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


@auth_bp.route("/users", methods=["GET"])
def list_login_users():
    users = User.query.filter_by(is_active=True).order_by(User.name.asc()).all()
    return jsonify([{"id": u.id, "name": u.name, "role": u.role, "initials": u.initials} for u in users])


@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate with user id + PIN."""
    payload = request.get_json(silent=True) or {}
    user_id = parse_optional_int(payload.get("user_id"))
    access_code = str(payload.get("access_code") or "")

    user = db.session.get(User, user_id) if user_id is not None else None

    if not user or not user.check_access_code(access_code, current_app.config["DEFAULT_ACCESS_CODE"]):
        logger.warning("Failed login for user_id=%s from %s", user_id, request.remote_addr)
        return jsonify({"error": "Usuario o código incorrecto."}), 401

    if not user.is_active:
        logger.warning("Login attempt for inactive user %s", user.name)
        return jsonify({"error": "El usuario está inactivo."}), 403

    login_user(user)
    logger.info("User %s logged in", user.name)
    return jsonify(user.to_dict())


@auth_bp.route("/logout", methods=["POST"])
@login_required_json
def logout():
    logout_user()
    return jsonify({"ok": True})


@auth_bp.route("/me", methods=["GET"])
@login_required_json
def me():
    return jsonify(current_user.to_dict())


@auth_bp.route("/csrf-token", methods=["GET"])
def csrf_token():
    return jsonify({"csrf_token": generate_csrf()})
