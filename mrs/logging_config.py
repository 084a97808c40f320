"""Logging setup for the Material Request System."""

from __future__ import annotations

import logging
from logging.config import dictConfig

from flask import Flask, has_request_context
from flask_login import current_user

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s [user=%(user_id)s] %(message)s"


class UserContextFilter(logging.Filter):
    """Inject the logged-in user id (or '-') into every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        user_id = "-"
        if has_request_context():
            try:
                if current_user.is_authenticated:
                    user_id = str(current_user.get_id())
            except Exception:
                # Logging must never fail because the login manager is not set up.
                user_id = "-"
        record.user_id = user_id
        return True


def configure_logging(app: Flask) -> None:
    """
    Configure the 'mrs' logger tree once per process.

    Level comes from app.config["LOG_LEVEL"]. Flask's own app.logger is left alone.
    """
    level = str(app.config.get("LOG_LEVEL", "INFO")).upper()

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {
                "user_context": {"()": UserContextFilter},
            },
            "formatters": {
                "default": {"format": LOG_FORMAT},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                    "filters": ["user_context"],
                },
            },
            "loggers": {
                "mrs": {
                    "level": level,
                    "handlers": ["console"],
                    "propagate": True,
                },
            },
        }
    )
