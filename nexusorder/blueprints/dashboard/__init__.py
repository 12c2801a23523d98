"""
Dashboard blueprint package.

Exposes the Blueprint object imported by the app factory; routes live in routes.py.
"""

from .routes import dashboard_bp  # noqa: F401
