"""
mrs/services/material_requests.py

Material request lifecycle engine.

State machine:

    DRAFT --submit--> FOR_REC_APPROVAL --rec approve--> FOR_FINAL_APPROVAL --final approve--> POSTED
      ^                    |                |                     |
      |                    | rec disapprove | (no FINAL approver) | final disapprove
    update                 v                v                     v
    (DRAFT/FOR_EDIT)   DISAPPROVED     FINAL_APPROVED --post--> POSTED --receive--> RECEIVED

Rules:
- Every operation reloads the request, re-checks authorization and status, then
  mutates and commits ONCE. Items, parent row and audit entries share that transaction.
- Final approval sets FINAL_APPROVED fields and POSTED fields in one update
  (date_approved == date_posted). No intermediate FINAL_APPROVED state is committed.
- The recommending "skip final" path stops at FINAL_APPROVED; posting then needs
  mark_as_posted.
- Totals are always recomputed here from items/freight/discount; client totals are ignored.
"""

from __future__ import annotations

import logging
from typing import List, Optional

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload, selectinload

from ..audit import log_action, serialize_model
from ..exceptions import AuthorizationError, NotFoundError, StateError, ValidationError
from ..extensions import db
from ..models import (
    ApprovalStatus,
    ApproverType,
    BusinessUnit,
    Department,
    MaterialRequest,
    MaterialRequestItem,
    RequestStatus,
    User,
    utcnow,
)
from ..schemas import (
    ApprovalDecision,
    DocNoQuery,
    MaterialRequestCreate,
    MaterialRequestUpdate,
    PostPayload,
    QueueFilters,
    ReceivePayload,
    RequestFilters,
    parse_payload,
)
from ..security import can_edit_request, can_post, can_receive, can_view_coordinator_queues
from .approvers import resolve_approver
from .base import ActionResult, service_action
from .numbering import next_doc_no
from .serializers import serialize_request
from .totals import compute_total, line_total, money

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------
def _load_request(request_id: int) -> MaterialRequest:
    mr = db.session.get(MaterialRequest, request_id)
    if mr is None:
        raise NotFoundError("Material request")
    return mr


def _build_items(items) -> List[MaterialRequestItem]:
    """Fresh item rows in payload order (line_no 1..n)."""
    rows = []
    for line_no, item in enumerate(items, start=1):
        rows.append(
            MaterialRequestItem(
                line_no=line_no,
                item_code=item.item_code,
                description=item.description,
                uom=item.uom,
                quantity=money(item.quantity),
                unit_price=money(item.unit_price) if item.unit_price is not None else None,
                total_price=line_total(item.quantity, item.unit_price),
                remarks=item.remarks,
                is_new=item.is_new,
            )
        )
    return rows


def _resolve_organization(data, default_department_id: Optional[int] = None) -> Optional[int]:
    """
    Validate business unit / department references and return the department id.

    default_department_id (the requester's home department) is used when the payload
    has none, and dropped silently if it belongs to another business unit.
    """
    if db.session.get(BusinessUnit, data.business_unit_id) is None:
        raise NotFoundError("Business unit")

    explicit = data.department_id is not None
    department_id = data.department_id if explicit else default_department_id
    if department_id is None:
        return None

    department = db.session.get(Department, department_id)
    if department is None:
        if explicit:
            raise NotFoundError("Department")
        return None

    if department.business_unit_id != data.business_unit_id:
        if explicit:
            raise ValidationError(
                "Validation error in department_id: Department does not belong to the selected business unit",
                field="department_id",
            )
        return None
    return department_id


def _apply_fields(mr: MaterialRequest, data, department_id: Optional[int]) -> None:
    mr.type = data.type
    mr.date_prepared = data.date_prepared
    mr.date_required = data.date_required
    mr.business_unit_id = data.business_unit_id
    mr.department_id = department_id
    mr.charge_to = data.charge_to
    mr.purpose = data.purpose
    mr.remarks = data.remarks
    mr.deliver_to = data.deliver_to
    mr.freight = money(data.freight)
    mr.discount = money(data.discount)
    mr.items = _build_items(data.items)
    # Computed from the stored rows so total and items always agree.
    mr.total = compute_total(mr.items, mr.freight, mr.discount)


def _append_remarks(existing: Optional[str], stage: str, remarks: Optional[str]) -> Optional[str]:
    if not remarks:
        return existing
    entry = f"[{stage}] {remarks}"
    return f"{existing}\n{entry}" if existing else entry


def _log_transition(mr: MaterialRequest, old_status: RequestStatus, actor) -> None:
    logger.info(
        "Material request %s: %s -> %s by user %s",
        mr.doc_no, old_status.value, mr.status.value, actor.id,
    )


# ---------------------------------------------------------------------
# Create / update / delete
# ---------------------------------------------------------------------
@service_action("Failed to create material request")
def create_material_request(actor, payload) -> ActionResult:
    data = parse_payload(MaterialRequestCreate, payload)
    max_attempts = max(1, int(current_app.config.get("DOC_NO_MAX_ATTEMPTS", 3)))

    requester = db.session.get(User, actor.id)
    home_department_id = requester.mrs_department_id if requester is not None else None

    attempt = 0
    while True:
        attempt += 1
        department_id = _resolve_organization(data, home_department_id)

        doc_no = next_doc_no(data.series)
        mr = MaterialRequest(
            doc_no=doc_no,
            series=data.series,
            status=RequestStatus.DRAFT,
            requested_by_id=actor.id,
        )
        _apply_fields(mr, data, department_id)
        db.session.add(mr)

        try:
            db.session.flush()
        except IntegrityError:
            # Another writer took the same doc_no between read and insert.
            db.session.rollback()
            if attempt >= max_attempts:
                raise
            logger.warning("Document number %s already taken, retrying (%s/%s)", doc_no, attempt, max_attempts)
            continue

        log_action(actor, mr, "CREATE", after=serialize_model(mr))
        db.session.commit()

        logger.info("Material request %s created by user %s", mr.doc_no, actor.id)
        return ActionResult.ok("Material request created successfully", serialize_request(mr))


@service_action("Failed to update material request")
def update_material_request(actor, request_id: int, payload) -> ActionResult:
    data = parse_payload(MaterialRequestUpdate, payload)
    mr = _load_request(request_id)

    if not can_edit_request(actor, mr.requested_by_id):
        raise AuthorizationError("You can only edit your own requests")
    if not mr.is_editable:
        raise StateError("Cannot edit request in current status")

    department_id = _resolve_organization(data)

    before = serialize_model(mr)
    old_status = mr.status

    _apply_fields(mr, data, department_id)
    mr.status = RequestStatus.DRAFT
    mr.date_revised = utcnow()
    db.session.flush()

    log_action(actor, mr, "UPDATE", before=before, after=serialize_model(mr))
    db.session.commit()

    if old_status != mr.status:
        _log_transition(mr, old_status, actor)
    return ActionResult.ok("Material request updated successfully", serialize_request(mr))


@service_action("Failed to delete material request")
def delete_material_request(actor, request_id: int) -> ActionResult:
    mr = _load_request(request_id)

    if not can_edit_request(actor, mr.requested_by_id):
        raise AuthorizationError("You can only delete your own requests")
    if mr.status != RequestStatus.DRAFT:
        raise StateError("Cannot delete request in current status")

    doc_no = mr.doc_no
    log_action(actor, mr, "DELETE", before=serialize_model(mr))
    db.session.delete(mr)
    db.session.commit()

    logger.info("Material request %s deleted by user %s", doc_no, actor.id)
    return ActionResult.ok("Material request deleted successfully")


# ---------------------------------------------------------------------
# Approval workflow
# ---------------------------------------------------------------------
@service_action("Failed to submit for approval")
def submit_for_approval(actor, request_id: int) -> ActionResult:
    mr = _load_request(request_id)

    if mr.requested_by_id != actor.id:
        raise AuthorizationError("You can only submit your own requests")
    if mr.status != RequestStatus.DRAFT:
        raise StateError("Request is not in draft status")

    approver = resolve_approver(mr.department_id, ApproverType.RECOMMENDING)
    if approver is None:
        raise StateError("No recommending approvers found for this department")

    before = serialize_model(mr)
    old_status = mr.status

    mr.status = RequestStatus.FOR_REC_APPROVAL
    mr.rec_approver_id = approver.id
    mr.rec_approval_status = ApprovalStatus.PENDING
    db.session.flush()

    log_action(actor, mr, "SUBMIT", before=before, after=serialize_model(mr))
    db.session.commit()

    _log_transition(mr, old_status, actor)
    return ActionResult.ok("Material request submitted for approval successfully")


@service_action("Failed to process approval")
def process_recommending_approval(actor, request_id: int, payload) -> ActionResult:
    decision = parse_payload(ApprovalDecision, payload)
    mr = _load_request(request_id)

    if mr.rec_approver_id != actor.id:
        raise AuthorizationError("You are not authorized to approve this request")
    if mr.status != RequestStatus.FOR_REC_APPROVAL:
        raise StateError("Request is not pending recommending approval")

    before = serialize_model(mr)
    old_status = mr.status
    now = utcnow()

    mr.rec_approval_status = decision.status
    mr.rec_approval_date = now
    mr.remarks = _append_remarks(mr.remarks, "Recommending", decision.remarks)

    if decision.status == ApprovalStatus.APPROVED:
        final_approver = resolve_approver(mr.department_id, ApproverType.FINAL)
        if final_approver is not None:
            mr.status = RequestStatus.FOR_FINAL_APPROVAL
            mr.final_approver_id = final_approver.id
            mr.final_approval_status = ApprovalStatus.PENDING
        else:
            # No final stage for this department: the recommending approver signs both.
            mr.status = RequestStatus.FINAL_APPROVED
            mr.final_approver_id = actor.id
            mr.final_approval_status = ApprovalStatus.APPROVED
            mr.final_approval_date = now
            mr.date_approved = now
        action = "REC_APPROVE"
    else:
        mr.status = RequestStatus.DISAPPROVED
        action = "REC_DISAPPROVE"

    db.session.flush()
    log_action(actor, mr, action, before=before, after=serialize_model(mr))
    db.session.commit()

    _log_transition(mr, old_status, actor)
    return ActionResult.ok(f"Request {decision.status.value.lower()} successfully")


@service_action("Failed to process approval")
def process_final_approval(actor, request_id: int, payload) -> ActionResult:
    decision = parse_payload(ApprovalDecision, payload)
    mr = _load_request(request_id)

    if mr.final_approver_id != actor.id:
        raise AuthorizationError("You are not authorized to approve this request")
    if mr.status != RequestStatus.FOR_FINAL_APPROVAL:
        raise StateError("Request is not pending final approval")

    before = serialize_model(mr)
    old_status = mr.status
    now = utcnow()

    mr.final_approval_status = decision.status
    mr.final_approval_date = now
    mr.remarks = _append_remarks(mr.remarks, "Final", decision.remarks)

    approved = decision.status == ApprovalStatus.APPROVED
    if approved:
        # FINAL_APPROVED and POSTED in one write.
        mr.date_approved = now
        mr.date_posted = now
        mr.status = RequestStatus.POSTED
        action = "FINAL_APPROVE"
        message = "Request approved and automatically posted successfully"
    else:
        mr.status = RequestStatus.DISAPPROVED
        action = "FINAL_DISAPPROVE"
        message = f"Request {decision.status.value.lower()} successfully"

    db.session.flush()
    log_action(actor, mr, action, before=before, after=serialize_model(mr))
    db.session.commit()

    _log_transition(mr, old_status, actor)
    return ActionResult.ok(message, {"auto_posted": approved})


# ---------------------------------------------------------------------
# Coordinator: posting / receiving
# ---------------------------------------------------------------------
@service_action("Failed to mark request as posted")
def mark_as_posted(actor, request_id: int, payload=None) -> ActionResult:
    if not can_post(actor):
        raise AuthorizationError("You don't have permission to post material requests")

    data = parse_payload(PostPayload, payload)
    mr = _load_request(request_id)

    if mr.status != RequestStatus.FINAL_APPROVED:
        raise StateError("Request must be final approved before posting")

    before = serialize_model(mr)
    old_status = mr.status

    mr.status = RequestStatus.POSTED
    mr.date_posted = utcnow()
    mr.confirmation_no = data.confirmation_no
    db.session.flush()

    log_action(actor, mr, "POST", before=before, after=serialize_model(mr))
    db.session.commit()

    _log_transition(mr, old_status, actor)
    return ActionResult.ok("Material request marked as posted successfully")


@service_action("Failed to mark request as received")
def mark_as_received(actor, request_id: int, payload=None) -> ActionResult:
    if not can_receive(actor):
        raise AuthorizationError("You don't have permission to receive material requests")

    data = parse_payload(ReceivePayload, payload)
    mr = _load_request(request_id)

    if mr.status != RequestStatus.POSTED:
        raise StateError("Request must be posted before marking as received")

    before = serialize_model(mr)
    old_status = mr.status

    mr.status = RequestStatus.RECEIVED
    mr.date_received = utcnow()
    mr.supplier_bp_code = data.supplier_bp_code
    mr.supplier_name = data.supplier_name
    mr.purchase_order_number = data.purchase_order_number
    db.session.flush()

    log_action(actor, mr, "RECEIVE", before=before, after=serialize_model(mr))
    db.session.commit()

    _log_transition(mr, old_status, actor)
    return ActionResult.ok("Material request marked as received successfully")


# ---------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------
def _with_relations(query):
    return query.options(
        joinedload(MaterialRequest.business_unit),
        joinedload(MaterialRequest.department),
        joinedload(MaterialRequest.requested_by),
        selectinload(MaterialRequest.items),
    )


@service_action("Failed to fetch material requests")
def list_material_requests(actor, filters=None) -> ActionResult:
    data = parse_payload(RequestFilters, filters)

    query = _with_relations(MaterialRequest.query)
    if data.status is not None:
        query = query.filter(MaterialRequest.status == data.status)
    if data.business_unit_id is not None:
        query = query.filter(MaterialRequest.business_unit_id == data.business_unit_id)
    if data.department_id is not None:
        query = query.filter(MaterialRequest.department_id == data.department_id)
    if data.requested_by_id is not None:
        query = query.filter(MaterialRequest.requested_by_id == data.requested_by_id)
    if data.type is not None:
        query = query.filter(MaterialRequest.type == data.type)

    rows = query.order_by(MaterialRequest.created_at.desc(), MaterialRequest.id.desc()).all()
    return ActionResult.ok("OK", {"requests": [serialize_request(mr) for mr in rows]})


@service_action("Failed to fetch material request")
def get_material_request(actor, request_id: int) -> ActionResult:
    return ActionResult.ok("OK", serialize_request(_load_request(request_id)))


@service_action("Failed to fetch pending approvals")
def pending_approvals_for(actor) -> ActionResult:
    """Requests waiting on the caller at either approval stage."""
    query = _with_relations(MaterialRequest.query).filter(
        or_(
            and_(
                MaterialRequest.status == RequestStatus.FOR_REC_APPROVAL,
                MaterialRequest.rec_approver_id == actor.id,
                MaterialRequest.rec_approval_status == ApprovalStatus.PENDING,
            ),
            and_(
                MaterialRequest.status == RequestStatus.FOR_FINAL_APPROVAL,
                MaterialRequest.final_approver_id == actor.id,
                MaterialRequest.final_approval_status == ApprovalStatus.PENDING,
            ),
        )
    )
    rows = query.order_by(MaterialRequest.created_at.desc(), MaterialRequest.id.desc()).all()
    return ActionResult.ok("OK", {"requests": [serialize_request(mr) for mr in rows]})


def _coordinator_queue(actor, status: RequestStatus, filters, order_column) -> ActionResult:
    if not can_view_coordinator_queues(actor):
        return ActionResult.ok("OK", {"requests": []})

    data = parse_payload(QueueFilters, filters)

    query = _with_relations(MaterialRequest.query).filter(MaterialRequest.status == status)
    if data.business_unit_id is not None:
        query = query.filter(MaterialRequest.business_unit_id == data.business_unit_id)
    if data.search:
        term = f"%{data.search}%"
        query = query.join(User, MaterialRequest.requested_by_id == User.id).filter(
            or_(
                MaterialRequest.doc_no.ilike(term),
                MaterialRequest.purpose.ilike(term),
                MaterialRequest.confirmation_no.ilike(term),
                User.first_name.ilike(term),
                User.last_name.ilike(term),
            )
        )

    rows = query.order_by(order_column.desc(), MaterialRequest.id.desc()).all()
    return ActionResult.ok("OK", {"requests": [serialize_request(mr) for mr in rows]})


@service_action("Failed to fetch approved requests")
def approved_requests(actor, filters=None) -> ActionResult:
    """Final approved, not yet posted."""
    return _coordinator_queue(actor, RequestStatus.FINAL_APPROVED, filters, MaterialRequest.date_approved)


@service_action("Failed to fetch posted requests")
def posted_requests(actor, filters=None) -> ActionResult:
    return _coordinator_queue(actor, RequestStatus.POSTED, filters, MaterialRequest.date_posted)


@service_action("Failed to fetch received requests")
def received_requests(actor, filters=None) -> ActionResult:
    return _coordinator_queue(actor, RequestStatus.RECEIVED, filters, MaterialRequest.date_received)


@service_action("Failed to generate document number")
def next_document_number(actor, query) -> ActionResult:
    """Preview only; the number is assigned for real at create time."""
    data = parse_payload(DocNoQuery, query)
    return ActionResult.ok("OK", {"doc_no": next_doc_no(data.series)})
