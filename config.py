"""
Configuration classes for the Material Request System.

Values come from environment variables where they differ per deployment
(SECRET_KEY, DATABASE_URL, LOG_LEVEL, DOC_NO_MAX_ATTEMPTS). Defaults suit local
development only.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


class Config:
    """Base configuration shared by all environments."""

    # Must be overridden outside development.
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # SQLite file next to this module unless DATABASE_URL is set (PostgreSQL in production)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'mrs.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # CSRF protection for mutating requests (JSON clients send X-CSRFToken)
    WTF_CSRF_ENABLED = True

    APP_NAME = "Material Request System"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Document numbers are read-then-write; a unique constraint catches collisions
    # and creation retries with a freshly computed number this many times.
    DOC_NO_MAX_ATTEMPTS = int(os.environ.get("DOC_NO_MAX_ATTEMPTS", "3"))


class TestConfig(Config):
    """Configuration used by the pytest suite."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "DEBUG"
