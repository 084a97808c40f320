"""
Settings routes (self-service, all logged-in users).

- PUT  /settings/profile    own names, email, contact number
- POST /settings/password   {"current_password", "new_password", "confirm_password"}

Both endpoints are on the Viewer guard allow-list (see mrs/security.py).
"""

from flask import Blueprint
from flask_login import login_required

from ...security import current_actor
from ...services import users
from ...utils import json_payload, respond

settings_bp = Blueprint("settings", __name__, url_prefix="/settings")


@settings_bp.route("/profile", methods=["PUT"])
@login_required
def update_profile():
    return respond(users.update_profile(current_actor(), json_payload()))


@settings_bp.route("/password", methods=["POST"])
@login_required
def change_password():
    return respond(users.change_password(current_actor(), json_payload()))
