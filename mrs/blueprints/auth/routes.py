"""
Authentication Routes

Provides:
- POST /auth/login
- POST /auth/logout
- GET  /auth/me
- GET  /auth/csrf-token
- POST /auth/seed-admin (first system bootstrap)

Rules:
- Only active users may log in.
- Credentials are validated via the Werkzeug password hash.
- seed-admin works only while the users table is empty.
"""

import logging

from flask import Blueprint, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...audit import log_action, serialize_model
from ...exceptions import ValidationError
from ...extensions import db
from ...models import Role, User
from ...schemas import AdminBootstrap, LoginPayload, parse_payload
from ...security import actor_for
from ...services.serializers import serialize_user
from ...utils import error_response, json_payload

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """Authenticate a user and open a Flask-Login session."""
    try:
        data = parse_payload(LoginPayload, json_payload())
    except ValidationError as exc:
        return error_response(exc.message, 400)

    user = User.query.filter_by(email=data.email).first()

    if not user or not user.check_password(data.password):
        logger.info("Failed login attempt for %s", data.email)
        return error_response("Invalid email or password", 401)

    if not user.is_active:
        return error_response("Account is inactive", 403)

    login_user(user)
    logger.info("User %s logged in", user.id)
    return jsonify({"success": True, "message": "Logged in successfully", "data": serialize_user(user)})


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    return jsonify({"success": True, "message": "Logged out successfully"})


# ============================================================
# SESSION INFO
# ============================================================

@auth_bp.route("/me")
@login_required
def me():
    return jsonify({"success": True, "message": "OK", "data": serialize_user(current_user)})


@auth_bp.route("/csrf-token")
def csrf_token():
    """Token for JSON clients; send it back in the X-CSRFToken header."""
    return jsonify({"success": True, "message": "OK", "data": {"csrf_token": generate_csrf()}})


# ============================================================
# SEED FIRST ADMIN (BOOTSTRAP)
# ============================================================

@auth_bp.route("/seed-admin", methods=["POST"])
def seed_admin():
    """
    Bootstrap the FIRST admin of the system.

    Safety Rules:
    - If ANY user already exists -> block
    """
    if User.query.count() > 0:
        return error_response("Users already exist", 400)

    try:
        data = parse_payload(AdminBootstrap, json_payload())
    except ValidationError as exc:
        return error_response(exc.message, 400)

    user = User(
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        role=Role.ADMIN,
        is_active=True,
    )
    user.set_password(data.password)

    db.session.add(user)
    db.session.flush()

    actor = actor_for(user)
    log_action(actor, user, "CREATE", after=serialize_model(user))
    db.session.commit()

    logger.info("Bootstrap admin %s created", user.email)
    return jsonify({"success": True, "message": "Admin created. Please log in.", "data": serialize_user(user)})
