"""
Approval routes.

- GET  /approvals/pending              requests waiting on the logged-in approver
- POST /approvals/<id>/recommending    {"status": "APPROVED"|"DISAPPROVED", "remarks"?}
- POST /approvals/<id>/final           same payload; approval auto-posts

Only the approver recorded on the request may decide; the services check it.
"""

from flask import Blueprint
from flask_login import login_required

from ...security import current_actor
from ...services import material_requests as service
from ...utils import json_payload, respond

approvals_bp = Blueprint("approvals", __name__, url_prefix="/approvals")


@approvals_bp.route("/pending")
@login_required
def pending():
    return respond(service.pending_approvals_for(current_actor()))


@approvals_bp.route("/<int:request_id>/recommending", methods=["POST"])
@login_required
def recommending_decision(request_id: int):
    return respond(service.process_recommending_approval(current_actor(), request_id, json_payload()))


@approvals_bp.route("/<int:request_id>/final", methods=["POST"])
@login_required
def final_decision(request_id: int):
    return respond(service.process_final_approval(current_actor(), request_id, json_payload()))
