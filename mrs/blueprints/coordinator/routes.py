"""
MRS coordinator routes (posting and receiving).

Queues (ADMIN / MANAGER / PURCHASER / STOCKROOM; other roles get an empty list):
- GET /coordinator/approved   FINAL_APPROVED, waiting to be posted
- GET /coordinator/posted     POSTED, waiting to be received
- GET /coordinator/received   RECEIVED ("Done")
  Query: ?business_unit_id=&search= (doc no, purpose, confirmation no, requester name)

Actions:
- POST /coordinator/<id>/post     {"confirmation_no"?}            ADMIN / MANAGER / PURCHASER
- POST /coordinator/<id>/receive  {"supplier_bp_code"?, "supplier_name"?,
                                   "purchase_order_number"?}       + STOCKROOM
"""

from flask import Blueprint
from flask_login import login_required

from ...security import current_actor
from ...services import material_requests as service
from ...utils import json_payload, query_args, respond

coordinator_bp = Blueprint("coordinator", __name__, url_prefix="/coordinator")


# ---------------------------------------------------------------------
# Queues
# ---------------------------------------------------------------------
@coordinator_bp.route("/approved")
@login_required
def approved():
    return respond(service.approved_requests(current_actor(), query_args()))


@coordinator_bp.route("/posted")
@login_required
def posted():
    return respond(service.posted_requests(current_actor(), query_args()))


@coordinator_bp.route("/received")
@login_required
def received():
    return respond(service.received_requests(current_actor(), query_args()))


# ---------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------
@coordinator_bp.route("/<int:request_id>/post", methods=["POST"])
@login_required
def post_request(request_id: int):
    return respond(service.mark_as_posted(current_actor(), request_id, json_payload()))


@coordinator_bp.route("/<int:request_id>/receive", methods=["POST"])
@login_required
def receive_request(request_id: int):
    return respond(service.mark_as_received(current_actor(), request_id, json_payload()))
