"""
mrs/services/business_units.py

Business unit administration (ADMIN / MANAGER only).

NOTES:
- code is unique across all business units.
- A business unit cannot be deleted while it owns departments or material requests.
  Deactivate it instead (toggle_business_unit_status).
"""

from __future__ import annotations

import logging

from ..audit import log_action, serialize_model
from ..exceptions import AuthorizationError, NotFoundError, ReferentialError, StateError
from ..extensions import db
from ..models import BusinessUnit, Department, MaterialRequest
from ..schemas import BusinessUnitCreate, BusinessUnitUpdate, parse_payload
from ..security import is_admin_or_manager
from .base import ActionResult, service_action
from .serializers import serialize_business_unit

logger = logging.getLogger(__name__)


def _require_admin(actor) -> None:
    if not is_admin_or_manager(actor):
        raise AuthorizationError()


def _load_unit(business_unit_id: int) -> BusinessUnit:
    unit = db.session.get(BusinessUnit, business_unit_id)
    if unit is None:
        raise NotFoundError("Business unit")
    return unit


def _ensure_code_free(code: str, exclude_id=None) -> None:
    query = BusinessUnit.query.filter(BusinessUnit.code == code)
    if exclude_id is not None:
        query = query.filter(BusinessUnit.id != exclude_id)
    if query.first() is not None:
        raise StateError("Business unit code already exists")


@service_action("Failed to create business unit")
def create_business_unit(actor, payload) -> ActionResult:
    _require_admin(actor)
    data = parse_payload(BusinessUnitCreate, payload)
    _ensure_code_free(data.code)

    unit = BusinessUnit(code=data.code, name=data.name, description=data.description, is_active=True)
    db.session.add(unit)
    db.session.flush()

    log_action(actor, unit, "CREATE", after=serialize_model(unit))
    db.session.commit()

    logger.info("Business unit %s created by user %s", unit.code, actor.id)
    return ActionResult.ok("Business unit created successfully", serialize_business_unit(unit))


@service_action("Failed to update business unit")
def update_business_unit(actor, business_unit_id: int, payload) -> ActionResult:
    _require_admin(actor)
    data = parse_payload(BusinessUnitUpdate, payload)
    unit = _load_unit(business_unit_id)
    _ensure_code_free(data.code, exclude_id=unit.id)

    before = serialize_model(unit)
    unit.code = data.code
    unit.name = data.name
    unit.description = data.description
    unit.is_active = data.is_active
    db.session.flush()

    log_action(actor, unit, "UPDATE", before=before, after=serialize_model(unit))
    db.session.commit()

    return ActionResult.ok("Business unit updated successfully", serialize_business_unit(unit))


@service_action("Failed to delete business unit")
def delete_business_unit(actor, business_unit_id: int) -> ActionResult:
    _require_admin(actor)
    unit = _load_unit(business_unit_id)

    if Department.query.filter_by(business_unit_id=unit.id).count():
        raise ReferentialError("Cannot delete business unit with existing departments")
    if MaterialRequest.query.filter_by(business_unit_id=unit.id).count():
        raise ReferentialError("Cannot delete business unit with existing requests")

    code = unit.code
    log_action(actor, unit, "DELETE", before=serialize_model(unit))
    db.session.delete(unit)
    db.session.commit()

    logger.info("Business unit %s deleted by user %s", code, actor.id)
    return ActionResult.ok("Business unit deleted successfully")


@service_action("Failed to update business unit status")
def toggle_business_unit_status(actor, business_unit_id: int) -> ActionResult:
    _require_admin(actor)
    unit = _load_unit(business_unit_id)

    before = serialize_model(unit)
    was_active = unit.is_active
    unit.is_active = not was_active
    db.session.flush()

    log_action(actor, unit, "TOGGLE", before=before, after=serialize_model(unit))
    db.session.commit()

    return ActionResult.ok(
        f"Business unit {'deactivated' if was_active else 'activated'} successfully",
        serialize_business_unit(unit),
    )


@service_action("Failed to load business units")
def list_business_units(actor) -> ActionResult:
    units = BusinessUnit.query.order_by(BusinessUnit.name.asc()).all()
    return ActionResult.ok("OK", {"business_units": [serialize_business_unit(u) for u in units]})


@service_action("Failed to load business unit")
def get_business_unit(actor, business_unit_id: int) -> ActionResult:
    unit = _load_unit(business_unit_id)
    return ActionResult.ok("OK", serialize_business_unit(unit, with_departments=True))
