"""
Application configuration.
This module defines the configuration settings for the NexusOrder Flask application: database connection,
secret key, login gate defaults, read-retry policy, AI extraction and logging. It uses environment variables
for sensitive information and defaults for development. In production, make sure to set the appropriate
environment variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'nexusorder.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection (JSON clients send the token in the X-CSRFToken header)
    WTF_CSRF_ENABLED = _env_bool("WTF_CSRF_ENABLED", True)

    APP_NAME = "NexusOrder"

    # Login gate: PIN used for users that never set their own access code
    DEFAULT_ACCESS_CODE = os.environ.get("DEFAULT_ACCESS_CODE", "1234")

    # Reads are retried on connectivity errors, writes never are
    READ_RETRY_ATTEMPTS = int(os.environ.get("READ_RETRY_ATTEMPTS", "3"))
    READ_RETRY_DELAY = float(os.environ.get("READ_RETRY_DELAY", "1.0"))

    # AI smart assist (text -> draft order)
    OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY")
    AI_MODEL = os.environ.get("AI_MODEL", "gpt-4o-mini")

    # Logging
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
    LOG_DIR = os.environ.get("LOG_DIR")

    EXPORT_FILENAME_PREFIX = "NexusOrders_Export"


class TestingConfig(Config):
    """In-memory database, no CSRF, no retry backoff."""

    TESTING = True
    SECRET_KEY = "test-secret-key"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    READ_RETRY_DELAY = 0.0
    OPENAI_API_KEY = None
    LOG_DIR = None
