"""
Tests for the material request lifecycle engine.

Covers:
- Create (doc_no, totals, home department default, validation, doc_no retry)
- Update / delete (ownership, editable statuses, atomic item replacement)
- Submit, recommending and final approval (both approver paths)
- Posting and receiving (role checks, status preconditions)
- Queries (pending approvals, coordinator queues)
- Audit trail and transition logging
"""

from decimal import Decimal

import pytest

from mrs.extensions import db
from mrs.models import (
    ApprovalStatus,
    ApproverType,
    AuditLog,
    MaterialRequest,
    MaterialRequestItem,
    RequestStatus,
    Role,
)
from mrs.security import actor_for
from mrs.services import material_requests as engine
from mrs.services.numbering import year_suffix

pytestmark = pytest.mark.usefixtures("ctx")


# =============================================================================
# Helpers / fixtures
# =============================================================================


def _reload(request_id: int) -> MaterialRequest:
    return db.session.get(MaterialRequest, request_id)


@pytest.fixture
def create(org, request_payload):
    """Create a DRAFT request as the org requester (or another user)."""

    def _create(user=None, **overrides) -> int:
        user = user or org.requester
        payload = request_payload(org.unit.id, org.department.id, **overrides)
        result = engine.create_material_request(actor_for(user), payload)
        assert result.success is True, result.message
        return result.data["id"]

    return _create


@pytest.fixture
def submitted(org, create):
    request_id = create()
    result = engine.submit_for_approval(actor_for(org.requester), request_id)
    assert result.success is True, result.message
    return request_id


@pytest.fixture
def pending_final(org, submitted):
    result = engine.process_recommending_approval(actor_for(org.rec_approver), submitted, {"status": "APPROVED"})
    assert result.success is True, result.message
    return submitted


@pytest.fixture
def ops(org, make_department, make_user, assign_approver):
    """Department OPS with a recommending approver only (no final stage)."""
    department = make_department(org.unit, code="OPS")
    requester = make_user(Role.STAFF, department=department)
    assign_approver(department, org.rec_approver, ApproverType.RECOMMENDING)
    return department, requester


@pytest.fixture
def final_approved(org, ops, request_payload):
    """A request that took the skip-final path and sits at FINAL_APPROVED."""
    department, requester = ops
    result = engine.create_material_request(actor_for(requester), request_payload(org.unit.id, department.id))
    request_id = result.data["id"]
    assert engine.submit_for_approval(actor_for(requester), request_id).success
    assert engine.process_recommending_approval(actor_for(org.rec_approver), request_id, {"status": "APPROVED"}).success
    return request_id


@pytest.fixture
def posted(org, pending_final):
    result = engine.process_final_approval(actor_for(org.final_approver), pending_final, {"status": "APPROVED"})
    assert result.success is True, result.message
    return pending_final


# =============================================================================
# Create
# =============================================================================


class TestCreateMaterialRequest:
    """Tests for create_material_request."""

    def test_creates_draft_with_total(self, org, create):
        """New requests are DRAFT with a server-computed total."""
        mr = _reload(create())

        assert mr.status == RequestStatus.DRAFT
        assert mr.total == Decimal("205.00")
        assert mr.requested_by_id == org.requester.id
        assert mr.doc_no == f"PO-{year_suffix()}-00001"

    def test_items_keep_payload_order(self, create):
        """Items are stored with line numbers in payload order."""
        mr = _reload(create())

        assert [item.line_no for item in mr.items] == [1, 2]
        assert [item.description for item in mr.items] == ["Laptop bag", "Docking station"]
        assert mr.items[0].total_price == Decimal("100.00")

    def test_result_data_is_json_ready(self, org, request_payload):
        """Result data carries numbers and the status label."""
        result = engine.create_material_request(
            actor_for(org.requester), request_payload(org.unit.id, org.department.id)
        )

        assert result.message == "Material request created successfully"
        assert result.data["total"] == 205.0
        assert result.data["status_label"] == "Draft"
        assert result.data["items"][1]["unit_price"] == 100.0

    def test_sequential_doc_numbers(self, create):
        """Each create takes the next number of its series."""
        first = _reload(create()).doc_no
        second = _reload(create()).doc_no
        job_order = _reload(create(series="JO")).doc_no

        yy = year_suffix()
        assert (first, second, job_order) == (f"PO-{yy}-00001", f"PO-{yy}-00002", f"JO-{yy}-00001")

    def test_client_total_and_status_ignored(self, create):
        """total / status / doc_no in the payload never reach the row."""
        mr = _reload(create(total=9999, status="POSTED", doc_no="PO-99-99999"))

        assert mr.total == Decimal("205.00")
        assert mr.status == RequestStatus.DRAFT
        assert mr.doc_no != "PO-99-99999"

    def test_home_department_default(self, org, request_payload):
        """An omitted department defaults to the requester's home department."""
        payload = request_payload(org.unit.id)
        payload.pop("department_id")

        result = engine.create_material_request(actor_for(org.requester), payload)

        assert result.success is True, result.message
        assert _reload(result.data["id"]).department_id == org.department.id

    def test_department_must_belong_to_business_unit(self, org, make_business_unit, make_department, request_payload):
        """A department from another business unit is rejected."""
        foreign = make_department(make_business_unit(code="OTHER"), code="FX")

        result = engine.create_material_request(actor_for(org.requester), request_payload(org.unit.id, foreign.id))

        assert result.success is False
        assert "Department does not belong to the selected business unit" in result.message

    def test_requires_items(self, org, request_payload):
        """At least one item is required."""
        result = engine.create_material_request(
            actor_for(org.requester), request_payload(org.unit.id, org.department.id, items=[])
        )

        assert result.success is False
        assert result.message == "Validation error in items: At least one item is required"
        assert MaterialRequest.query.count() == 0

    def test_quantity_must_be_positive(self, org, request_payload):
        """Zero quantity fails with the field path."""
        items = [{"description": "Mouse", "uom": "pc", "quantity": 0}]

        result = engine.create_material_request(
            actor_for(org.requester), request_payload(org.unit.id, org.department.id, items=items)
        )

        assert result.success is False
        assert result.message == "Validation error in items.0.quantity: Quantity must be positive"

    def test_sub_cent_quantity_rejected(self, org, request_payload):
        """A quantity that would not survive storage in cents is rejected."""
        items = [{"description": "Rivets", "uom": "kg", "quantity": "0.004", "unit_price": 100}]

        result = engine.create_material_request(
            actor_for(org.requester), request_payload(org.unit.id, org.department.id, items=items)
        )

        assert result.success is False
        assert result.message == "Validation error in items.0.quantity: Quantity must have at most 2 decimal places"
        assert MaterialRequest.query.count() == 0

    def test_sub_cent_unit_price_rejected(self, org, request_payload):
        """Unit prices are limited to cents."""
        items = [{"description": "Washers", "uom": "pc", "quantity": 3, "unit_price": "0.333"}]

        result = engine.create_material_request(
            actor_for(org.requester), request_payload(org.unit.id, org.department.id, items=items)
        )

        assert result.success is False
        assert result.message == "Validation error in items.0.unit_price: Unit price must have at most 2 decimal places"

    def test_stored_items_add_up_to_total(self, create):
        """The stored total equals the stored items plus freight minus discount."""
        items = [
            {"description": "Cable", "uom": "m", "quantity": "2.50", "unit_price": "4.35"},
            {"description": "Tape", "uom": "roll", "quantity": "0.01", "unit_price": "19.99"},
            {"description": "Sample", "uom": "pc", "quantity": 1},
        ]
        mr = _reload(create(items=items, freight="1.10", discount="0.05"))

        subtotal = sum(item.quantity * item.unit_price for item in mr.items if item.unit_price is not None)
        assert all(item.quantity > 0 for item in mr.items)
        assert mr.total == (subtotal + mr.freight - mr.discount).quantize(Decimal("0.01"))
        assert mr.total == Decimal("12.12")

    def test_existing_item_needs_code(self, org, request_payload):
        """is_new = False requires item_code."""
        items = [{"description": "Toner", "uom": "pc", "quantity": 1, "is_new": False}]

        result = engine.create_material_request(
            actor_for(org.requester), request_payload(org.unit.id, org.department.id, items=items)
        )

        assert result.success is False
        assert result.message == "Validation error in items.0.item_code: Item code is required for existing items"

    def test_unknown_business_unit(self, org, request_payload):
        """A missing business unit is reported."""
        result = engine.create_material_request(actor_for(org.requester), request_payload(424242))

        assert result.success is False
        assert result.message == "Business unit not found"
        assert result.error_code == "NOT_FOUND"

    def test_anonymous_rejected(self, org, request_payload):
        """No actor means Unauthorized."""
        result = engine.create_material_request(None, request_payload(org.unit.id))

        assert result.success is False
        assert result.message == "Unauthorized"

    def test_retries_on_doc_no_collision(self, org, create, monkeypatch):
        """A doc_no taken between read and insert is retried with a new number."""
        taken = _reload(create()).doc_no
        numbers = iter([taken, "PO-99-00077"])
        monkeypatch.setattr(engine, "next_doc_no", lambda series: next(numbers))

        request_id = create()

        assert _reload(request_id).doc_no == "PO-99-00077"
        assert MaterialRequest.query.count() == 2

    def test_gives_up_after_max_attempts(self, org, create, request_payload, monkeypatch):
        """Persistent collisions end in a generic failure without partial rows."""
        taken = _reload(create()).doc_no
        calls = []

        def always_taken(series):
            calls.append(series)
            return taken

        monkeypatch.setattr(engine, "next_doc_no", always_taken)

        result = engine.create_material_request(
            actor_for(org.requester), request_payload(org.unit.id, org.department.id)
        )

        assert result.success is False
        assert result.message == "Failed to create material request"
        assert len(calls) == 3
        assert MaterialRequest.query.count() == 1


# =============================================================================
# Update / delete
# =============================================================================


class TestUpdateMaterialRequest:
    """Tests for update_material_request."""

    def test_replaces_items_and_recomputes(self, org, create, request_payload):
        """Items are replaced wholesale and the total recomputed."""
        request_id = create()
        payload = request_payload(
            org.unit.id,
            org.department.id,
            freight=0,
            discount=0,
            items=[{"description": "Monitor", "uom": "pc", "quantity": 3, "unit_price": "120.50"}],
        )

        result = engine.update_material_request(actor_for(org.requester), request_id, payload)

        assert result.success is True, result.message
        mr = _reload(request_id)
        assert [item.description for item in mr.items] == ["Monitor"]
        assert mr.total == Decimal("361.50")
        assert mr.date_revised is not None
        assert MaterialRequestItem.query.count() == 1

    def test_sub_cent_values_rejected(self, org, create, request_payload):
        """Finer than cent quantities or prices leave the request untouched."""
        request_id = create()
        for item, field in (
            ({"description": "Rivets", "uom": "kg", "quantity": "0.004", "unit_price": 100}, "quantity"),
            ({"description": "Washers", "uom": "pc", "quantity": 3, "unit_price": "0.333"}, "unit_price"),
        ):
            payload = request_payload(org.unit.id, org.department.id, items=[item])

            result = engine.update_material_request(actor_for(org.requester), request_id, payload)

            assert result.success is False
            assert result.message.startswith(f"Validation error in items.0.{field}:")

        mr = _reload(request_id)
        assert [item.description for item in mr.items] == ["Laptop bag", "Docking station"]
        assert mr.total == Decimal("205.00")

    def test_for_edit_returns_to_draft(self, org, create, request_payload):
        """Editing a FOR_EDIT request puts it back to DRAFT."""
        request_id = create()
        _reload(request_id).status = RequestStatus.FOR_EDIT
        db.session.commit()

        result = engine.update_material_request(
            actor_for(org.requester), request_id, request_payload(org.unit.id, org.department.id)
        )

        assert result.success is True, result.message
        assert _reload(request_id).status == RequestStatus.DRAFT

    def test_other_staff_rejected(self, org, create, make_user, request_payload):
        """Only the owner (or admin/manager) may edit."""
        request_id = create()
        intruder = make_user(Role.STAFF)

        result = engine.update_material_request(
            actor_for(intruder), request_id, request_payload(org.unit.id, org.department.id)
        )

        assert result.success is False
        assert result.message == "You can only edit your own requests"

    def test_manager_may_edit(self, org, create, make_user, request_payload):
        """Managers may edit other users' editable requests."""
        request_id = create()
        manager = make_user(Role.MANAGER)

        result = engine.update_material_request(
            actor_for(manager), request_id, request_payload(org.unit.id, org.department.id, purpose="Changed")
        )

        assert result.success is True, result.message
        assert _reload(request_id).purpose == "Changed"

    def test_submitted_not_editable(self, org, submitted, request_payload):
        """Requests under approval cannot be edited."""
        result = engine.update_material_request(
            actor_for(org.requester), submitted, request_payload(org.unit.id, org.department.id)
        )

        assert result.success is False
        assert result.message == "Cannot edit request in current status"
        assert _reload(submitted).status == RequestStatus.FOR_REC_APPROVAL

    def test_failure_keeps_old_items(self, org, create, request_payload, monkeypatch):
        """A failure mid-update leaves the previous items and total intact."""
        request_id = create()

        def boom(*args, **kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(engine, "log_action", boom)
        payload = request_payload(
            org.unit.id,
            org.department.id,
            items=[{"description": "Only item", "uom": "pc", "quantity": 1, "unit_price": 1}],
        )

        result = engine.update_material_request(actor_for(org.requester), request_id, payload)

        assert result.success is False
        assert result.message == "Failed to update material request"
        mr = _reload(request_id)
        assert [item.description for item in mr.items] == ["Laptop bag", "Docking station"]
        assert mr.total == Decimal("205.00")
        assert mr.date_revised is None


class TestDeleteMaterialRequest:
    """Tests for delete_material_request."""

    def test_owner_deletes_draft(self, org, create):
        """Deleting a DRAFT removes the request and its items."""
        request_id = create()

        result = engine.delete_material_request(actor_for(org.requester), request_id)

        assert result.success is True
        assert _reload(request_id) is None
        assert MaterialRequestItem.query.count() == 0

    def test_admin_deletes_others(self, org, create, make_user):
        """Admins may delete other users' drafts."""
        request_id = create()

        result = engine.delete_material_request(actor_for(make_user(Role.ADMIN)), request_id)

        assert result.success is True

    def test_other_staff_rejected(self, org, create, make_user):
        """Other staff cannot delete."""
        request_id = create()

        result = engine.delete_material_request(actor_for(make_user(Role.STAFF)), request_id)

        assert result.success is False
        assert result.message == "You can only delete your own requests"

    def test_only_draft(self, org, submitted):
        """Submitted requests cannot be deleted."""
        result = engine.delete_material_request(actor_for(org.requester), submitted)

        assert result.success is False
        assert result.message == "Cannot delete request in current status"
        assert _reload(submitted) is not None

    def test_missing(self, org):
        """Unknown ids are reported as not found."""
        result = engine.delete_material_request(actor_for(org.requester), 999)

        assert result.message == "Material request not found"


# =============================================================================
# Approval workflow
# =============================================================================


class TestSubmitForApproval:
    """Tests for submit_for_approval."""

    def test_submit_assigns_recommending_approver(self, org, submitted):
        """Submission resolves the department's recommending approver."""
        mr = _reload(submitted)

        assert mr.status == RequestStatus.FOR_REC_APPROVAL
        assert mr.rec_approver_id == org.rec_approver.id
        assert mr.rec_approval_status == ApprovalStatus.PENDING

    def test_no_recommending_approver(self, org, make_department, request_payload):
        """Without an active recommending approver the request stays DRAFT."""
        bare = make_department(org.unit, code="BARE")
        result = engine.create_material_request(actor_for(org.requester), request_payload(org.unit.id, bare.id))
        request_id = result.data["id"]

        result = engine.submit_for_approval(actor_for(org.requester), request_id)

        assert result.success is False
        assert result.message == "No recommending approvers found for this department"
        assert _reload(request_id).status == RequestStatus.DRAFT

    def test_inactive_recommending_approver_only(self, org, create):
        """Deactivated approvers do not count."""
        for assignment in org.department.approvers:
            assignment.is_active = False
        db.session.commit()
        request_id = create()

        result = engine.submit_for_approval(actor_for(org.requester), request_id)

        assert result.message == "No recommending approvers found for this department"

    def test_owner_only(self, org, create, make_user):
        """Even admins cannot submit someone else's request."""
        request_id = create()

        result = engine.submit_for_approval(actor_for(make_user(Role.ADMIN)), request_id)

        assert result.success is False
        assert result.message == "You can only submit your own requests"

    def test_not_draft(self, org, submitted):
        """Submitting twice fails."""
        result = engine.submit_for_approval(actor_for(org.requester), submitted)

        assert result.success is False
        assert result.message == "Request is not in draft status"


class TestRecommendingApproval:
    """Tests for process_recommending_approval."""

    def test_approve_moves_to_final_stage(self, org, pending_final):
        """With a FINAL approver the request waits for final approval."""
        mr = _reload(pending_final)

        assert mr.status == RequestStatus.FOR_FINAL_APPROVAL
        assert mr.rec_approval_status == ApprovalStatus.APPROVED
        assert mr.rec_approval_date is not None
        assert mr.final_approver_id == org.final_approver.id
        assert mr.final_approval_status == ApprovalStatus.PENDING

    def test_approve_without_final_approver(self, org, final_approved):
        """Without a FINAL approver the recommending approver signs the final stage."""
        mr = _reload(final_approved)

        assert mr.status == RequestStatus.FINAL_APPROVED
        assert mr.final_approver_id == org.rec_approver.id
        assert mr.final_approval_status == ApprovalStatus.APPROVED
        assert mr.final_approval_date is not None
        assert mr.date_approved is not None
        assert mr.date_posted is None

    def test_disapprove(self, org, submitted):
        """Disapproval ends the workflow."""
        result = engine.process_recommending_approval(
            actor_for(org.rec_approver), submitted, {"status": "DISAPPROVED"}
        )

        assert result.success is True
        assert result.message == "Request disapproved successfully"
        mr = _reload(submitted)
        assert mr.status == RequestStatus.DISAPPROVED
        assert mr.rec_approval_status == ApprovalStatus.DISAPPROVED

    def test_only_assigned_approver(self, org, submitted):
        """The final approver cannot act on the recommending stage."""
        result = engine.process_recommending_approval(
            actor_for(org.final_approver), submitted, {"status": "APPROVED"}
        )

        assert result.success is False
        assert result.message == "You are not authorized to approve this request"
        assert _reload(submitted).status == RequestStatus.FOR_REC_APPROVAL

    def test_not_pending(self, org, pending_final):
        """A second recommending decision is rejected."""
        result = engine.process_recommending_approval(
            actor_for(org.rec_approver), pending_final, {"status": "APPROVED"}
        )

        assert result.success is False
        assert result.message == "Request is not pending recommending approval"

    def test_pending_is_not_a_decision(self, org, submitted):
        """PENDING is rejected as a decision."""
        result = engine.process_recommending_approval(
            actor_for(org.rec_approver), submitted, {"status": "PENDING"}
        )

        assert result.success is False
        assert result.message == "Validation error in status: Decision must be APPROVED or DISAPPROVED"

    def test_remarks_appended(self, org, create):
        """Approver remarks are appended to the request remarks."""
        request_id = create(remarks="Urgent")
        engine.submit_for_approval(actor_for(org.requester), request_id)

        engine.process_recommending_approval(
            actor_for(org.rec_approver), request_id, {"status": "APPROVED", "remarks": "Within budget"}
        )

        assert _reload(request_id).remarks == "Urgent\n[Recommending] Within budget"


class TestFinalApproval:
    """Tests for process_final_approval."""

    def test_approve_auto_posts(self, org, pending_final):
        """Final approval lands directly on POSTED with both dates equal."""
        result = engine.process_final_approval(
            actor_for(org.final_approver), pending_final, {"status": "APPROVED", "remarks": "OK"}
        )

        assert result.success is True
        assert result.message == "Request approved and automatically posted successfully"
        assert result.data == {"auto_posted": True}
        mr = _reload(pending_final)
        assert mr.status == RequestStatus.POSTED
        assert mr.final_approval_status == ApprovalStatus.APPROVED
        assert mr.date_approved is not None
        assert mr.date_approved == mr.date_posted
        assert mr.remarks == "[Final] OK"

    def test_disapprove(self, org, pending_final):
        """Final disapproval ends the workflow without posting."""
        result = engine.process_final_approval(
            actor_for(org.final_approver), pending_final, {"status": "DISAPPROVED"}
        )

        assert result.data == {"auto_posted": False}
        mr = _reload(pending_final)
        assert mr.status == RequestStatus.DISAPPROVED
        assert mr.date_posted is None

    def test_only_assigned_approver(self, org, pending_final):
        """The recommending approver cannot decide the final stage."""
        result = engine.process_final_approval(
            actor_for(org.rec_approver), pending_final, {"status": "APPROVED"}
        )

        assert result.success is False
        assert result.message == "You are not authorized to approve this request"
        assert result.error_code == "NOT_AUTHORIZED"

    def test_not_pending(self, org, posted):
        """A posted request cannot be approved again."""
        result = engine.process_final_approval(actor_for(org.final_approver), posted, {"status": "APPROVED"})

        assert result.success is False
        assert result.message == "Request is not pending final approval"

    def test_failure_commits_nothing(self, org, pending_final, monkeypatch):
        """No intermediate FINAL_APPROVED state survives a failure."""

        def boom(*args, **kwargs):
            raise RuntimeError("audit store unavailable")

        monkeypatch.setattr(engine, "log_action", boom)

        result = engine.process_final_approval(
            actor_for(org.final_approver), pending_final, {"status": "APPROVED"}
        )

        assert result.success is False
        assert result.message == "Failed to process approval"
        mr = _reload(pending_final)
        assert mr.status == RequestStatus.FOR_FINAL_APPROVAL
        assert mr.date_approved is None
        assert mr.date_posted is None


# =============================================================================
# Posting / receiving
# =============================================================================


class TestPosting:
    """Tests for mark_as_posted."""

    def test_purchaser_posts_final_approved(self, org, final_approved):
        """FINAL_APPROVED requests are posted with a confirmation number."""
        result = engine.mark_as_posted(actor_for(org.purchaser), final_approved, {"confirmation_no": "CNF-1"})

        assert result.success is True, result.message
        mr = _reload(final_approved)
        assert mr.status == RequestStatus.POSTED
        assert mr.confirmation_no == "CNF-1"
        assert mr.date_posted is not None

    def test_staff_cannot_post(self, org, final_approved):
        """Posting needs ADMIN, MANAGER or PURCHASER."""
        result = engine.mark_as_posted(actor_for(org.requester), final_approved)

        assert result.success is False
        assert result.message == "You don't have permission to post material requests"

    def test_stockroom_cannot_post(self, org, final_approved):
        """Stockroom may receive but not post."""
        result = engine.mark_as_posted(actor_for(org.stockroom), final_approved)

        assert result.success is False

    def test_requires_final_approved(self, org, submitted):
        """Only FINAL_APPROVED requests can be posted."""
        result = engine.mark_as_posted(actor_for(org.purchaser), submitted)

        assert result.success is False
        assert result.message == "Request must be final approved before posting"


class TestReceiving:
    """Tests for mark_as_received."""

    def test_stockroom_receives_posted(self, org, posted):
        """POSTED requests are received with supplier details."""
        payload = {"supplier_bp_code": "BP-100", "supplier_name": "Acme Supply", "purchase_order_number": "PO-778"}

        result = engine.mark_as_received(actor_for(org.stockroom), posted, payload)

        assert result.success is True, result.message
        mr = _reload(posted)
        assert mr.status == RequestStatus.RECEIVED
        assert mr.status_label == "Done"
        assert mr.supplier_name == "Acme Supply"
        assert mr.purchase_order_number == "PO-778"
        assert mr.date_received is not None

    def test_staff_cannot_receive(self, org, posted):
        """Receiving needs a coordinator role."""
        result = engine.mark_as_received(actor_for(org.requester), posted)

        assert result.success is False
        assert result.message == "You don't have permission to receive material requests"

    def test_requires_posted(self, org, final_approved):
        """FINAL_APPROVED requests must be posted first."""
        result = engine.mark_as_received(actor_for(org.stockroom), final_approved)

        assert result.success is False
        assert result.message == "Request must be posted before marking as received"


# =============================================================================
# End-to-end scenarios
# =============================================================================


class TestEndToEnd:
    """Full lifecycle runs through both approver paths."""

    def test_two_stage_path(self, org, request_payload):
        """Create -> submit -> recommend -> final approve lands on POSTED."""
        created = engine.create_material_request(
            actor_for(org.requester), request_payload(org.unit.id, org.department.id)
        )
        request_id = created.data["id"]
        assert _reload(request_id).total == Decimal("205.00")

        assert engine.submit_for_approval(actor_for(org.requester), request_id).success
        assert _reload(request_id).rec_approver_id == org.rec_approver.id

        assert engine.process_recommending_approval(
            actor_for(org.rec_approver), request_id, {"status": "APPROVED"}
        ).success
        assert _reload(request_id).status == RequestStatus.FOR_FINAL_APPROVAL

        final = engine.process_final_approval(actor_for(org.final_approver), request_id, {"status": "APPROVED"})
        assert final.data["auto_posted"] is True

        mr = _reload(request_id)
        assert mr.status == RequestStatus.POSTED
        assert mr.final_approval_status == ApprovalStatus.APPROVED
        assert mr.date_approved is not None and mr.date_posted is not None

        assert engine.mark_as_received(actor_for(org.stockroom), request_id).success
        assert _reload(request_id).status == RequestStatus.RECEIVED

    def test_skip_final_path_needs_explicit_posting(self, org, final_approved):
        """Without a final approver the request stays FINAL_APPROVED until posted."""
        assert _reload(final_approved).status == RequestStatus.FINAL_APPROVED

        assert engine.mark_as_posted(actor_for(org.purchaser), final_approved).success
        assert _reload(final_approved).status == RequestStatus.POSTED

    def test_audit_trail(self, org, posted):
        """Every transition writes one audit row, in order."""
        actions = [
            row.action
            for row in AuditLog.query.filter_by(entity_type="MaterialRequest", entity_id=posted)
            .order_by(AuditLog.id.asc())
            .all()
        ]

        assert actions == ["CREATE", "SUBMIT", "REC_APPROVE", "FINAL_APPROVE"]

    def test_transitions_logged(self, org, create, mrs_logs):
        """Status transitions are logged at INFO with both statuses."""
        request_id = create()
        engine.submit_for_approval(actor_for(org.requester), request_id)

        assert any("DRAFT -> FOR_REC_APPROVAL" in record.getMessage() for record in mrs_logs.records)


# =============================================================================
# Queries
# =============================================================================


class TestQueries:
    """Tests for list / pending / coordinator queue queries."""

    def test_pending_for_each_stage(self, org, submitted):
        """Pending approvals follow the request through the stages."""
        rec_queue = engine.pending_approvals_for(actor_for(org.rec_approver)).data["requests"]
        final_queue = engine.pending_approvals_for(actor_for(org.final_approver)).data["requests"]
        assert [r["id"] for r in rec_queue] == [submitted]
        assert final_queue == []

        engine.process_recommending_approval(actor_for(org.rec_approver), submitted, {"status": "APPROVED"})

        assert engine.pending_approvals_for(actor_for(org.rec_approver)).data["requests"] == []
        final_queue = engine.pending_approvals_for(actor_for(org.final_approver)).data["requests"]
        assert [r["id"] for r in final_queue] == [submitted]

    def test_list_filters_by_status(self, org, create, submitted):
        """The list can be narrowed by status."""
        draft_id = create()

        result = engine.list_material_requests(actor_for(org.requester), {"status": "DRAFT"})

        assert [r["id"] for r in result.data["requests"]] == [draft_id]

    def test_get_detail(self, org, create):
        """Detail includes items and requester."""
        request_id = create()

        result = engine.get_material_request(actor_for(org.requester), request_id)

        assert result.data["requested_by"]["id"] == org.requester.id
        assert len(result.data["items"]) == 2

    def test_approved_queue_for_coordinators(self, org, final_approved):
        """Coordinators see FINAL_APPROVED requests waiting for posting."""
        result = engine.approved_requests(actor_for(org.purchaser))

        assert [r["id"] for r in result.data["requests"]] == [final_approved]

    def test_queues_empty_for_other_roles(self, org, final_approved):
        """Non-coordinator roles get an empty list, not an error."""
        result = engine.approved_requests(actor_for(org.requester))

        assert result.success is True
        assert result.data == {"requests": []}

    def test_queue_search(self, org, posted, final_approved):
        """Search matches doc number and requester name, case-insensitively."""
        doc_no = _reload(posted).doc_no
        last_name = org.requester.last_name

        by_doc = engine.posted_requests(actor_for(org.stockroom), {"search": doc_no.lower()})
        by_name = engine.posted_requests(actor_for(org.stockroom), {"search": last_name.upper()})
        miss = engine.posted_requests(actor_for(org.stockroom), {"search": "no-such-thing"})

        assert [r["id"] for r in by_doc.data["requests"]] == [posted]
        assert [r["id"] for r in by_name.data["requests"]] == [posted]
        assert miss.data["requests"] == []

    def test_received_queue(self, org, posted):
        """Received requests appear in the received queue only."""
        engine.mark_as_received(actor_for(org.stockroom), posted)

        assert [r["id"] for r in engine.received_requests(actor_for(org.stockroom)).data["requests"]] == [posted]
        assert engine.posted_requests(actor_for(org.stockroom)).data["requests"] == []

    def test_next_document_number_preview(self, org, create):
        """The preview does not consume a number."""
        create()

        first = engine.next_document_number(actor_for(org.requester), {"series": "PO"})
        second = engine.next_document_number(actor_for(org.requester), {"series": "PO"})

        assert first.data == second.data == {"doc_no": f"PO-{year_suffix()}-00002"}
