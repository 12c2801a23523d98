"""
nexusorder/__init__.py

Flask application factory for NexusOrder (service-company order management).

Architecture:
- JSON API, one blueprint per area (auth, orders, dashboard, settings, users, budget).
- Pricing / economics / aggregation live in plain modules with no Flask dependency
  on the request; blueprints are thin shells that load rows and call them.
- SQLite for dev, PostgreSQL-ready (SQLAlchemy + migrations).
- Roles are enforced server-side (global read-only guard + per-route decorators).
"""

from __future__ import annotations

import click
from flask import Flask, jsonify
from flask_login import current_user

from .extensions import csrf, db, login_manager, migrate
from .logging_conf import configure_logging
from .models import User
from .security import viewer_readonly_guard


def create_app(config_object: str | object = "config.Config") -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)
    app.config.from_object(config_object)

    configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    csrf.init_app(app)
    login_manager.init_app(app)

    @login_manager.user_loader
    def load_user(user_id: str) -> User | None:
        """Load user for Flask-Login."""
        try:
            return db.session.get(User, int(user_id))
        except (TypeError, ValueError):
            return None

    @login_manager.unauthorized_handler
    def _unauthorized():
        return jsonify({"error": "Debe iniciar sesión."}), 401

    # ----------------------------------------------------------------------
    # GLOBAL SECURITY NET: Lector read-only guard (server-side).
    # ----------------------------------------------------------------------
    @app.before_request
    def _viewer_guard_hook():
        """
        Lector read-only enforcement (POST/PUT/PATCH/DELETE blocked).

        This is a safety net. Each route still enforces its own permissions.
        """
        return viewer_readonly_guard()

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.auth import auth_bp
    from .blueprints.budget import budget_bp
    from .blueprints.dashboard import dashboard_bp
    from .blueprints.orders import orders_bp
    from .blueprints.settings import settings_bp
    from .blueprints.users import users_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(dashboard_bp)
    app.register_blueprint(settings_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(budget_bp)

    # ----------------------------------------------------------------------
    # Errors (JSON everywhere)
    # ----------------------------------------------------------------------
    @app.errorhandler(404)
    def _not_found(_error):
        return jsonify({"error": "Recurso no encontrado."}), 404

    @app.errorhandler(405)
    def _method_not_allowed(_error):
        return jsonify({"error": "Método no permitido."}), 405

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables (dev shortcut; use `flask db upgrade` with migrations)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed-data")
    @click.option("--demo/--no-demo", default=False, help="Also load demo companies, clients, prices and orders.")
    def seed_data_command(demo: bool):
        """Seed default workflow, units, services and users."""
        from .seed import seed_defaults, seed_demo_data

        seed_defaults()
        click.echo("Default master data seeded.")
        if demo:
            seed_demo_data()
            click.echo("Demo data seeded.")

    # ----------------------------------------------------------------------
    # Home
    # ----------------------------------------------------------------------
    @app.route("/")
    def index():
        return jsonify(
            {
                "app": app.config.get("APP_NAME", "NexusOrder"),
                "authenticated": bool(current_user.is_authenticated),
            }
        )

    return app
