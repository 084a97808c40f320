"""
mrs/services/departments.py

Department administration (ADMIN / MANAGER only).

A department cannot be deleted while it owns users, material requests or approver
assignments. Each dependency type is reported with its own message.
"""

from __future__ import annotations

import logging

from ..audit import log_action, serialize_model
from ..exceptions import AuthorizationError, NotFoundError, ReferentialError, StateError
from ..extensions import db
from ..models import BusinessUnit, Department, DepartmentApprover, MaterialRequest, User
from ..schemas import DepartmentCreate, DepartmentUpdate, parse_payload
from ..security import is_admin_or_manager
from .base import ActionResult, service_action
from .serializers import serialize_department

logger = logging.getLogger(__name__)


def _require_admin(actor) -> None:
    if not is_admin_or_manager(actor):
        raise AuthorizationError()


def _load_department(department_id: int) -> Department:
    department = db.session.get(Department, department_id)
    if department is None:
        raise NotFoundError("Department")
    return department


def _validate(data, exclude_id=None) -> None:
    query = Department.query.filter(Department.code == data.code)
    if exclude_id is not None:
        query = query.filter(Department.id != exclude_id)
    if query.first() is not None:
        raise StateError("Department code already exists")

    if db.session.get(BusinessUnit, data.business_unit_id) is None:
        raise NotFoundError("Business unit")


@service_action("Failed to create department")
def create_department(actor, payload) -> ActionResult:
    _require_admin(actor)
    data = parse_payload(DepartmentCreate, payload)
    _validate(data)

    department = Department(
        code=data.code,
        name=data.name,
        description=data.description,
        business_unit_id=data.business_unit_id,
        is_active=True,
    )
    db.session.add(department)
    db.session.flush()

    log_action(actor, department, "CREATE", after=serialize_model(department))
    db.session.commit()

    logger.info("Department %s created by user %s", department.code, actor.id)
    return ActionResult.ok("Department created successfully", serialize_department(department))


@service_action("Failed to update department")
def update_department(actor, department_id: int, payload) -> ActionResult:
    _require_admin(actor)
    data = parse_payload(DepartmentUpdate, payload)
    department = _load_department(department_id)
    _validate(data, exclude_id=department.id)

    before = serialize_model(department)
    department.code = data.code
    department.name = data.name
    department.description = data.description
    department.business_unit_id = data.business_unit_id
    department.is_active = data.is_active
    db.session.flush()

    log_action(actor, department, "UPDATE", before=before, after=serialize_model(department))
    db.session.commit()

    return ActionResult.ok("Department updated successfully", serialize_department(department))


@service_action("Failed to delete department")
def delete_department(actor, department_id: int) -> ActionResult:
    _require_admin(actor)
    department = _load_department(department_id)

    if User.query.filter_by(mrs_department_id=department.id).count():
        raise ReferentialError("Cannot delete department with existing users")
    if MaterialRequest.query.filter_by(department_id=department.id).count():
        raise ReferentialError("Cannot delete department with existing requests")
    if DepartmentApprover.query.filter_by(department_id=department.id).count():
        raise ReferentialError("Cannot delete department with existing approvers")

    code = department.code
    log_action(actor, department, "DELETE", before=serialize_model(department))
    db.session.delete(department)
    db.session.commit()

    logger.info("Department %s deleted by user %s", code, actor.id)
    return ActionResult.ok("Department deleted successfully")


@service_action("Failed to update department status")
def toggle_department_status(actor, department_id: int) -> ActionResult:
    _require_admin(actor)
    department = _load_department(department_id)

    before = serialize_model(department)
    was_active = department.is_active
    department.is_active = not was_active
    db.session.flush()

    log_action(actor, department, "TOGGLE", before=before, after=serialize_model(department))
    db.session.commit()

    return ActionResult.ok(
        f"Department {'deactivated' if was_active else 'activated'} successfully",
        serialize_department(department),
    )


@service_action("Failed to load departments")
def list_departments(actor, business_unit_id=None) -> ActionResult:
    query = Department.query
    if business_unit_id is not None:
        query = query.filter(Department.business_unit_id == business_unit_id)
    departments = query.order_by(Department.name.asc()).all()
    return ActionResult.ok("OK", {"departments": [serialize_department(d) for d in departments]})


@service_action("Failed to load department")
def get_department(actor, department_id: int) -> ActionResult:
    return ActionResult.ok("OK", serialize_department(_load_department(department_id)))
