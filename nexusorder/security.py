"""
nexusorder/security.py

Role-based access control for the JSON API.

Roles:
- Admin: full access (master data, users, budget categories).
- Operaciones: edits orders, progress, attachments and budget cells.
- Lector: read-only everywhere.

This module also provides a global safety net:
- viewer_readonly_guard() blocks POST/PUT/PATCH/DELETE for Lector users.
  Wired via app.before_request in the app factory.

NOTE:
- The login gate is a convenience PIN, not a security boundary against hostile actors.
  Routes still check roles server-side so the API behaves consistently.
"""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Optional, Tuple

from flask import jsonify, request
from flask_login import current_user

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

# Endpoints a Lector may still call with a mutating method
SELF_SERVICE_ENDPOINTS = {"auth.login", "auth.logout"}


def _forbidden(message: str = "No tiene permisos para esta acción.") -> Tuple[Any, int]:
    return jsonify({"error": message}), 403


def _unauthorized() -> Tuple[Any, int]:
    return jsonify({"error": "Debe iniciar sesión."}), 401


def is_admin() -> bool:
    return bool(current_user.is_authenticated and getattr(current_user, "is_admin", False))


def can_edit() -> bool:
    """Admin or Operaciones."""
    if not current_user.is_authenticated:
        return False
    can_edit_fn = getattr(current_user, "can_edit", None)
    return bool(callable(can_edit_fn) and can_edit_fn())


def viewer_readonly_guard() -> Optional[Tuple[Any, int]]:
    """Global guard: Lector users cannot mutate data."""
    if request.method not in MUTATING_METHODS:
        return None

    if not current_user.is_authenticated:
        return None

    if can_edit():
        return None

    endpoint = (request.endpoint or "").strip()
    if endpoint in SELF_SERVICE_ENDPOINTS:
        return None

    return _forbidden("Perfil de solo lectura.")


def login_required_json(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Like flask_login.login_required but answers 401 JSON instead of redirecting."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return _unauthorized()
        return view_func(*args, **kwargs)

    return wrapper


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: admin-only."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return _unauthorized()
        if not is_admin():
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper


def editor_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: Admin or Operaciones (order and budget edits)."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not current_user.is_authenticated:
            return _unauthorized()
        if not can_edit():
            return _forbidden()
        return view_func(*args, **kwargs)

    return wrapper
