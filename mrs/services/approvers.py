"""
mrs/services/approvers.py

Approver resolution and approver-assignment administration.

Resolution rule:
- Assignments of one (department, type) form a priority list ordered by
  created_at DESC, id DESC (most recent assignment first).
- The first ACTIVE assignment wins. Inactive rows are skipped, not deleted,
  so a deactivated approver can be re-enabled without losing the history.

Administration (ADMIN / MANAGER only):
- assign_approver: rejects a duplicate (department, user, type)
- remove_approver / toggle_approver_status
- list_department_approvers / list_departments_with_approvers / list_eligible_users
"""

from __future__ import annotations

import logging
from typing import List, Optional

from sqlalchemy.orm import joinedload

from ..audit import log_action, serialize_model
from ..exceptions import AuthorizationError, NotFoundError, StateError
from ..extensions import db
from ..models import ApproverType, BusinessUnit, Department, DepartmentApprover, User
from ..schemas import ApproverAssign, parse_payload
from ..security import APPROVER_ELIGIBLE_ROLES, is_admin_or_manager
from .base import ActionResult, service_action
from .serializers import serialize_approver, serialize_department, serialize_user

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Resolution
# ---------------------------------------------------------------------
def _active_query(department_id: int, approver_type: ApproverType):
    return DepartmentApprover.query.filter_by(
        department_id=department_id,
        approver_type=ApproverType(approver_type),
        is_active=True,
    ).order_by(DepartmentApprover.created_at.desc(), DepartmentApprover.id.desc())


def active_approvers(department_id: Optional[int], approver_type: ApproverType) -> List[DepartmentApprover]:
    """Active assignments for (department, type) in resolution priority order."""
    if department_id is None:
        return []
    return _active_query(department_id, approver_type).all()


def resolve_approver(department_id: Optional[int], approver_type: ApproverType) -> Optional[User]:
    """The user who should act on the given stage for the department, or None."""
    if department_id is None:
        return None
    assignment = _active_query(department_id, approver_type).first()
    return assignment.user if assignment is not None else None


# ---------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------
def _require_admin(actor) -> None:
    if not is_admin_or_manager(actor):
        raise AuthorizationError()


def _load_assignment(approver_id: int) -> DepartmentApprover:
    assignment = db.session.get(DepartmentApprover, approver_id)
    if assignment is None:
        raise NotFoundError("Approver")
    return assignment


@service_action("Failed to assign approver")
def assign_approver(actor, payload) -> ActionResult:
    _require_admin(actor)
    data = parse_payload(ApproverAssign, payload)

    if db.session.get(Department, data.department_id) is None:
        raise NotFoundError("Department")
    user = db.session.get(User, data.user_id)
    if user is None:
        raise NotFoundError("User")

    existing = DepartmentApprover.query.filter_by(
        department_id=data.department_id,
        user_id=data.user_id,
        approver_type=data.approver_type,
    ).first()
    if existing is not None:
        raise StateError("User is already assigned as this type of approver for this department")

    assignment = DepartmentApprover(
        department_id=data.department_id,
        user_id=data.user_id,
        approver_type=data.approver_type,
        is_active=True,
    )
    db.session.add(assignment)
    db.session.flush()

    log_action(actor, assignment, "CREATE", after=serialize_model(assignment))
    db.session.commit()

    logger.info(
        "Assigned user %s as %s approver of department %s",
        data.user_id, data.approver_type.value, data.department_id,
    )
    return ActionResult.ok("Approver assigned successfully", serialize_approver(assignment))


@service_action("Failed to remove approver")
def remove_approver(actor, approver_id: int) -> ActionResult:
    _require_admin(actor)
    assignment = _load_assignment(approver_id)

    log_action(actor, assignment, "DELETE", before=serialize_model(assignment))
    db.session.delete(assignment)
    db.session.commit()

    return ActionResult.ok("Approver removed successfully")


@service_action("Failed to update approver status")
def toggle_approver_status(actor, approver_id: int) -> ActionResult:
    _require_admin(actor)
    assignment = _load_assignment(approver_id)

    before = serialize_model(assignment)
    was_active = assignment.is_active
    assignment.is_active = not was_active
    db.session.flush()

    log_action(actor, assignment, "TOGGLE", before=before, after=serialize_model(assignment))
    db.session.commit()

    return ActionResult.ok(
        f"Approver {'deactivated' if was_active else 'activated'} successfully",
        serialize_approver(assignment),
    )


@service_action("Failed to load approvers")
def list_department_approvers(actor, department_id: int) -> ActionResult:
    _require_admin(actor)
    if db.session.get(Department, department_id) is None:
        raise NotFoundError("Department")

    assignments = (
        DepartmentApprover.query
        .options(joinedload(DepartmentApprover.user))
        .filter_by(department_id=department_id)
        .order_by(
            DepartmentApprover.approver_type.asc(),
            DepartmentApprover.created_at.desc(),
            DepartmentApprover.id.desc(),
        )
        .all()
    )
    return ActionResult.ok("OK", {"approvers": [serialize_approver(a) for a in assignments]})


@service_action("Failed to load departments")
def list_departments_with_approvers(actor) -> ActionResult:
    _require_admin(actor)
    departments = (
        Department.query
        .join(BusinessUnit, Department.business_unit_id == BusinessUnit.id)
        .filter(Department.is_active.is_(True))
        .order_by(BusinessUnit.name.asc(), Department.name.asc())
        .all()
    )

    rows = []
    for department in departments:
        # Newest first within each type (stable sorts).
        assignments = sorted(department.approvers, key=lambda a: (a.created_at, a.id), reverse=True)
        assignments = sorted(assignments, key=lambda a: a.approver_type.value)
        rows.append(
            {
                **serialize_department(department),
                "approvers": [serialize_approver(a) for a in assignments],
            }
        )
    return ActionResult.ok("OK", {"departments": rows})


@service_action("Failed to load eligible users")
def list_eligible_users(actor) -> ActionResult:
    _require_admin(actor)
    users = (
        User.query
        .filter(User.role.in_(list(APPROVER_ELIGIBLE_ROLES)))
        .order_by(User.first_name.asc(), User.last_name.asc())
        .all()
    )
    return ActionResult.ok("OK", {"users": [serialize_user(u) for u in users]})

