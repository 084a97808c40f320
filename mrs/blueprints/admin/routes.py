"""
mrs/blueprints/admin/routes.py

Admin Routes – master data administration (ADMIN / MANAGER only)

Includes:
- Business units:  /admin/business-units[/<id>[/toggle]]
- Departments:     /admin/departments[/<id>[/toggle]]
- Approvers:       /admin/approvers, /admin/approvers/eligible-users,
                   /admin/departments/<id>/approvers, /admin/approvers/<id>[/toggle]
- Users:           /admin/users[/<id>]

NOTES:
- admin_required filters the whole area at the HTTP edge; every service re-checks
  the role against the Actor it receives.
- Audit logging and referential checks live in the services.
"""

from __future__ import annotations

from flask import Blueprint, request
from flask_login import login_required

from ...security import admin_required, current_actor
from ...services import approvers, business_units, departments, users
from ...utils import json_payload, respond

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


# -------------------------------------------------------
# BUSINESS UNITS
# -------------------------------------------------------
@admin_bp.route("/business-units", methods=["GET"])
@login_required
@admin_required
def business_unit_list():
    return respond(business_units.list_business_units(current_actor()))


@admin_bp.route("/business-units", methods=["POST"])
@login_required
@admin_required
def create_business_unit():
    return respond(business_units.create_business_unit(current_actor(), json_payload()))


@admin_bp.route("/business-units/<int:business_unit_id>", methods=["GET"])
@login_required
@admin_required
def get_business_unit(business_unit_id: int):
    return respond(business_units.get_business_unit(current_actor(), business_unit_id))


@admin_bp.route("/business-units/<int:business_unit_id>", methods=["PUT"])
@login_required
@admin_required
def update_business_unit(business_unit_id: int):
    return respond(business_units.update_business_unit(current_actor(), business_unit_id, json_payload()))


@admin_bp.route("/business-units/<int:business_unit_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_business_unit(business_unit_id: int):
    return respond(business_units.delete_business_unit(current_actor(), business_unit_id))


@admin_bp.route("/business-units/<int:business_unit_id>/toggle", methods=["POST"])
@login_required
@admin_required
def toggle_business_unit(business_unit_id: int):
    return respond(business_units.toggle_business_unit_status(current_actor(), business_unit_id))


# -------------------------------------------------------
# DEPARTMENTS
# -------------------------------------------------------
@admin_bp.route("/departments", methods=["GET"])
@login_required
@admin_required
def department_list():
    business_unit_id = request.args.get("business_unit_id", type=int)
    return respond(departments.list_departments(current_actor(), business_unit_id))


@admin_bp.route("/departments", methods=["POST"])
@login_required
@admin_required
def create_department():
    return respond(departments.create_department(current_actor(), json_payload()))


@admin_bp.route("/departments/<int:department_id>", methods=["GET"])
@login_required
@admin_required
def get_department(department_id: int):
    return respond(departments.get_department(current_actor(), department_id))


@admin_bp.route("/departments/<int:department_id>", methods=["PUT"])
@login_required
@admin_required
def update_department(department_id: int):
    return respond(departments.update_department(current_actor(), department_id, json_payload()))


@admin_bp.route("/departments/<int:department_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_department(department_id: int):
    return respond(departments.delete_department(current_actor(), department_id))


@admin_bp.route("/departments/<int:department_id>/toggle", methods=["POST"])
@login_required
@admin_required
def toggle_department(department_id: int):
    return respond(departments.toggle_department_status(current_actor(), department_id))


# -------------------------------------------------------
# APPROVERS
# -------------------------------------------------------
@admin_bp.route("/approvers", methods=["GET"])
@login_required
@admin_required
def approver_overview():
    """Active departments with their approver assignments."""
    return respond(approvers.list_departments_with_approvers(current_actor()))


@admin_bp.route("/approvers/eligible-users", methods=["GET"])
@login_required
@admin_required
def eligible_approvers():
    return respond(approvers.list_eligible_users(current_actor()))


@admin_bp.route("/departments/<int:department_id>/approvers", methods=["GET"])
@login_required
@admin_required
def department_approvers(department_id: int):
    return respond(approvers.list_department_approvers(current_actor(), department_id))


@admin_bp.route("/approvers", methods=["POST"])
@login_required
@admin_required
def assign_approver():
    return respond(approvers.assign_approver(current_actor(), json_payload()))


@admin_bp.route("/approvers/<int:approver_id>", methods=["DELETE"])
@login_required
@admin_required
def remove_approver(approver_id: int):
    return respond(approvers.remove_approver(current_actor(), approver_id))


@admin_bp.route("/approvers/<int:approver_id>/toggle", methods=["POST"])
@login_required
@admin_required
def toggle_approver(approver_id: int):
    return respond(approvers.toggle_approver_status(current_actor(), approver_id))


# -------------------------------------------------------
# USERS
# -------------------------------------------------------
@admin_bp.route("/users", methods=["GET"])
@login_required
@admin_required
def user_list():
    return respond(users.list_users(current_actor()))


@admin_bp.route("/users", methods=["POST"])
@login_required
@admin_required
def create_user():
    return respond(users.create_user(current_actor(), json_payload()))


@admin_bp.route("/users/<int:user_id>", methods=["GET"])
@login_required
@admin_required
def get_user(user_id: int):
    return respond(users.get_user(current_actor(), user_id))


@admin_bp.route("/users/<int:user_id>", methods=["PUT"])
@login_required
@admin_required
def update_user(user_id: int):
    return respond(users.update_user(current_actor(), user_id, json_payload()))


@admin_bp.route("/users/<int:user_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_user(user_id: int):
    return respond(users.delete_user(current_actor(), user_id))
