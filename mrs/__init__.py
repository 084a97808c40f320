"""
mrs/__init__.py

Flask application factory for the Material Request System.

Requirements:
- JSON API only; every response body is {"success", "message", "data"?}.
- PostgreSQL-ready (SQLAlchemy + migrations) but SQLite is used for dev and tests.
- UI is never trusted; server-side access control is enforced in the services.
"""

from __future__ import annotations

import click
from flask import Flask
from flask_wtf.csrf import CSRFError

from .extensions import csrf, db, login_manager, migrate
from .logging_config import configure_logging
from .models import User
from .security import viewer_readonly_guard
from .utils import error_response

# Blueprint imports kept inside create_app() to reduce import side effects.


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
    def unauthorized():
        return error_response("Unauthorized", 401)

    # ----------------------------------------------------------------------
    # Viewer read-only guard (runs before every view)
    # ----------------------------------------------------------------------
    @app.before_request
    def _viewer_guard_hook():
        """Block mutating requests from Viewers; services re-check their own roles."""
        return viewer_readonly_guard()

    # ----------------------------------------------------------------------
    # Error bodies in the uniform shape
    # ----------------------------------------------------------------------
    @app.errorhandler(CSRFError)
    def _csrf_error(exc):
        return error_response(exc.description or "CSRF token missing or invalid", 400)

    @app.errorhandler(404)
    def _not_found(exc):
        return error_response("Not found", 404)

    @app.errorhandler(405)
    def _method_not_allowed(exc):
        return error_response("Method not allowed", 405)

    # ----------------------------------------------------------------------
    # Blueprints
    # ----------------------------------------------------------------------
    from .blueprints.admin import admin_bp
    from .blueprints.approvals import approvals_bp
    from .blueprints.auth import auth_bp
    from .blueprints.coordinator import coordinator_bp
    from .blueprints.material_requests import material_requests_bp
    from .blueprints.settings import settings_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(material_requests_bp)
    app.register_blueprint(approvals_bp)
    app.register_blueprint(coordinator_bp)
    app.register_blueprint(admin_bp)
    app.register_blueprint(settings_bp)

    # ----------------------------------------------------------------------
    # CLI
    # ----------------------------------------------------------------------
    @app.cli.command("init-db")
    def init_db_command():
        """Create all tables (development without migrations)."""
        db.create_all()
        click.echo("Database tables created.")

    @app.cli.command("seed-demo")
    def seed_demo_command():
        """Seed a demo business unit, departments, users and approvers."""
        from .seed import seed_demo_data

        summary = seed_demo_data()
        click.echo(
            "Demo data seeded: {business_units} business unit(s), {departments} department(s), "
            "{users} user(s), {approvers} approver assignment(s) created.".format(**summary)
        )

    return app
