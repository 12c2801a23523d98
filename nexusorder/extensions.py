"""
Flask extension singletons for NexusOrder.

Blueprints, models and services import these objects; they are bound to the
application inside create_app(), so importing this module has no side effects.
"""

from flask_login import LoginManager
from flask_migrate import Migrate
from flask_sqlalchemy import SQLAlchemy
from flask_wtf import CSRFProtect

db = SQLAlchemy()
migrate = Migrate()

# Session-based login gate (user picked from a list + PIN)
login_manager = LoginManager()

# JSON clients send the token from /auth/csrf-token in the X-CSRFToken header
csrf = CSRFProtect()
