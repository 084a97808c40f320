"""
mrs/blueprints/material_requests/routes.py

Material request routes (requester side).

Routes:
- GET    /material-requests/                list (filters: status, business_unit_id,
                                            department_id, requested_by_id, type)
- POST   /material-requests/                create (DRAFT, doc_no generated server-side)
- GET    /material-requests/next-doc-no     preview next doc_no for ?series=PO|JO
- GET    /material-requests/<id>            detail with items
- PUT    /material-requests/<id>            edit (DRAFT / FOR_EDIT only; items replaced)
- DELETE /material-requests/<id>            delete (DRAFT only)
- POST   /material-requests/<id>/submit     DRAFT -> FOR_REC_APPROVAL

NOTES:
- Each route resolves the Actor, passes the raw JSON / query dict to ONE service
  operation and renders its ActionResult. No business rules live here.
"""

from __future__ import annotations

from flask import Blueprint
from flask_login import login_required

from ...security import current_actor
from ...services import material_requests as service
from ...utils import json_payload, query_args, respond

material_requests_bp = Blueprint("material_requests", __name__, url_prefix="/material-requests")


@material_requests_bp.route("/", methods=["GET"])
@login_required
def list_requests():
    return respond(service.list_material_requests(current_actor(), query_args()))


@material_requests_bp.route("/", methods=["POST"])
@login_required
def create_request():
    return respond(service.create_material_request(current_actor(), json_payload()))


@material_requests_bp.route("/next-doc-no", methods=["GET"])
@login_required
def next_doc_no():
    return respond(service.next_document_number(current_actor(), query_args()))


@material_requests_bp.route("/<int:request_id>", methods=["GET"])
@login_required
def get_request(request_id: int):
    return respond(service.get_material_request(current_actor(), request_id))


@material_requests_bp.route("/<int:request_id>", methods=["PUT"])
@login_required
def update_request(request_id: int):
    return respond(service.update_material_request(current_actor(), request_id, json_payload()))


@material_requests_bp.route("/<int:request_id>", methods=["DELETE"])
@login_required
def delete_request(request_id: int):
    return respond(service.delete_material_request(current_actor(), request_id))


@material_requests_bp.route("/<int:request_id>/submit", methods=["POST"])
@login_required
def submit_request(request_id: int):
    return respond(service.submit_for_approval(current_actor(), request_id))
