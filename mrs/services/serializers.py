"""
JSON-safe dict views of the models.

Money leaves the service layer as plain numbers (float); datetimes as ISO-8601 strings;
enums as their string values.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

from ..models import (
    BusinessUnit,
    Department,
    DepartmentApprover,
    MaterialRequest,
    MaterialRequestItem,
    User,
)


def as_number(value) -> Optional[float]:
    if value is None:
        return None
    return float(Decimal(str(value)))


def iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def enum_value(value) -> Optional[str]:
    if value is None:
        return None
    return getattr(value, "value", value)


def user_ref(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {
        "id": user.id,
        "first_name": user.first_name,
        "last_name": user.last_name,
        "email": user.email,
    }


def unit_ref(unit) -> Optional[dict]:
    """Short reference for a BusinessUnit or Department."""
    if unit is None:
        return None
    return {"id": unit.id, "code": unit.code, "name": unit.name}


def serialize_user(user: User) -> dict:
    return {
        **user_ref(user),
        "role": enum_value(user.role),
        "contact_no": user.contact_no,
        "mrs_department_id": user.mrs_department_id,
        "mrs_department": unit_ref(user.mrs_department),
        "is_active": user.is_active,
        "created_at": iso(user.created_at),
        "updated_at": iso(user.updated_at),
    }


def serialize_business_unit(unit: BusinessUnit, with_departments: bool = False) -> dict:
    data = {
        "id": unit.id,
        "code": unit.code,
        "name": unit.name,
        "description": unit.description,
        "is_active": unit.is_active,
        "created_at": iso(unit.created_at),
        "updated_at": iso(unit.updated_at),
    }
    if with_departments:
        data["departments"] = [serialize_department(d) for d in unit.departments]
    return data


def serialize_department(department: Department) -> dict:
    return {
        "id": department.id,
        "code": department.code,
        "name": department.name,
        "description": department.description,
        "business_unit_id": department.business_unit_id,
        "business_unit": unit_ref(department.business_unit),
        "is_active": department.is_active,
        "counts": {
            "users": len(department.users),
            "requests": len(department.requests),
            "approvers": len(department.approvers),
        },
        "created_at": iso(department.created_at),
        "updated_at": iso(department.updated_at),
    }


def serialize_approver(assignment: DepartmentApprover) -> dict:
    user = assignment.user
    return {
        "id": assignment.id,
        "department_id": assignment.department_id,
        "department": unit_ref(assignment.department),
        "user_id": assignment.user_id,
        "user": {**user_ref(user), "role": enum_value(user.role)} if user else None,
        "approver_type": enum_value(assignment.approver_type),
        "is_active": assignment.is_active,
        "created_at": iso(assignment.created_at),
    }


def serialize_item(item: MaterialRequestItem) -> dict:
    return {
        "id": item.id,
        "line_no": item.line_no,
        "item_code": item.item_code,
        "description": item.description,
        "uom": item.uom,
        "quantity": as_number(item.quantity),
        "unit_price": as_number(item.unit_price),
        "total_price": as_number(item.total_price),
        "remarks": item.remarks,
        "is_new": item.is_new,
    }


def serialize_request(request: MaterialRequest, with_items: bool = True) -> dict:
    data = {
        "id": request.id,
        "doc_no": request.doc_no,
        "series": enum_value(request.series),
        "type": enum_value(request.type),
        "status": enum_value(request.status),
        "status_label": request.status_label,
        "date_prepared": iso(request.date_prepared),
        "date_required": iso(request.date_required),
        "business_unit_id": request.business_unit_id,
        "business_unit": unit_ref(request.business_unit),
        "department_id": request.department_id,
        "department": unit_ref(request.department),
        "charge_to": request.charge_to,
        "purpose": request.purpose,
        "remarks": request.remarks,
        "deliver_to": request.deliver_to,
        "freight": as_number(request.freight),
        "discount": as_number(request.discount),
        "total": as_number(request.total),
        "confirmation_no": request.confirmation_no,
        "requested_by_id": request.requested_by_id,
        "requested_by": user_ref(request.requested_by),
        "rec_approver_id": request.rec_approver_id,
        "rec_approver": user_ref(request.rec_approver),
        "rec_approval_status": enum_value(request.rec_approval_status),
        "rec_approval_date": iso(request.rec_approval_date),
        "final_approver_id": request.final_approver_id,
        "final_approver": user_ref(request.final_approver),
        "final_approval_status": enum_value(request.final_approval_status),
        "final_approval_date": iso(request.final_approval_date),
        "date_approved": iso(request.date_approved),
        "date_posted": iso(request.date_posted),
        "date_received": iso(request.date_received),
        "date_revised": iso(request.date_revised),
        "supplier_bp_code": request.supplier_bp_code,
        "supplier_name": request.supplier_name,
        "purchase_order_number": request.purchase_order_number,
        "created_at": iso(request.created_at),
        "updated_at": iso(request.updated_at),
    }
    if with_items:
        data["items"] = [serialize_item(item) for item in request.items]
    return data
