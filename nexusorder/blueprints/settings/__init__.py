"""
Settings blueprint package.

Exposes the Blueprint object imported by the app factory; routes live in routes.py.
"""

from .routes import settings_bp  # noqa: F401
