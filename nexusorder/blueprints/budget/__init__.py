"""
Budget blueprint package.

Exposes the Blueprint object imported by the app factory; routes live in routes.py.
"""

from .routes import budget_bp  # noqa: F401
