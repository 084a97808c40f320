"""
Material Request System – Domain Models

Master data:
- BusinessUnit (tenant scope)
- Department (belongs to one BusinessUnit)
- DepartmentApprover (ordered approver assignments per Department and type)
- User (login identity, role, optional home Department)

Workflow documents:
- MaterialRequest (PO / JO request with a status state machine)
- MaterialRequestItem (line items, replaced wholesale on every edit)

Traceability:
- AuditLog (before/after snapshots written in the same transaction as the change)

IMPORTANT:
- UI is never trusted. Totals and statuses are computed server-side in mrs.services.
- Money columns are Numeric(12, 2); service code works in Decimal.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

from .extensions import db


def utcnow() -> datetime:
    """Naive UTC timestamp (portable across SQLite/PostgreSQL DateTime columns)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ---------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------
class Role(str, enum.Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    STAFF = "STAFF"
    TENANT = "TENANT"
    TREASURY = "TREASURY"
    PURCHASER = "PURCHASER"
    ACCTG = "ACCTG"
    VIEWER = "VIEWER"
    OWNER = "OWNER"
    STOCKROOM = "STOCKROOM"
    MAINTENANCE = "MAINTENANCE"


class ApproverType(str, enum.Enum):
    RECOMMENDING = "RECOMMENDING"
    FINAL = "FINAL"


class ApprovalStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    DISAPPROVED = "DISAPPROVED"


class RequestType(str, enum.Enum):
    ITEM = "ITEM"
    SERVICE = "SERVICE"


class Series(str, enum.Enum):
    PO = "PO"
    JO = "JO"


class RequestStatus(str, enum.Enum):
    """
    Material request lifecycle.

    REC_APPROVED, FOR_POSTING and TRANSMITTED are carried for label/reporting
    compatibility; no workflow operation assigns them.
    """

    DRAFT = "DRAFT"
    FOR_REC_APPROVAL = "FOR_REC_APPROVAL"
    REC_APPROVED = "REC_APPROVED"
    FOR_FINAL_APPROVAL = "FOR_FINAL_APPROVAL"
    FINAL_APPROVED = "FINAL_APPROVED"
    FOR_POSTING = "FOR_POSTING"
    POSTED = "POSTED"
    RECEIVED = "RECEIVED"
    TRANSMITTED = "TRANSMITTED"
    CANCELLED = "CANCELLED"
    DISAPPROVED = "DISAPPROVED"
    FOR_EDIT = "FOR_EDIT"


REQUEST_STATUS_LABELS = {
    RequestStatus.DRAFT: "Draft",
    RequestStatus.FOR_REC_APPROVAL: "For Recommending Approval",
    RequestStatus.REC_APPROVED: "Recommending Approved",
    RequestStatus.FOR_FINAL_APPROVAL: "For Final Approval",
    RequestStatus.FINAL_APPROVED: "Final Approved",
    RequestStatus.FOR_POSTING: "For Posting",
    RequestStatus.POSTED: "Posted",
    RequestStatus.RECEIVED: "Done",
    RequestStatus.TRANSMITTED: "Transmitted",
    RequestStatus.CANCELLED: "Cancelled",
    RequestStatus.DISAPPROVED: "Disapproved",
    RequestStatus.FOR_EDIT: "For Edit",
}

EDITABLE_STATUSES = frozenset({RequestStatus.DRAFT, RequestStatus.FOR_EDIT})


def _enum_column(enum_cls, **kwargs):
    """String-backed enum column (no native DB enum, portable migrations)."""
    return db.Column(
        db.Enum(enum_cls, native_enum=False, length=30, validate_strings=True),
        **kwargs,
    )


# ---------------------------------------------------------------------
# Organization
# ---------------------------------------------------------------------
class BusinessUnit(db.Model):
    """Top-level tenant. Owns Departments and MaterialRequests."""

    __tablename__ = "business_units"

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(10), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    departments = db.relationship(
        "Department",
        back_populates="business_unit",
        lazy=True,
        order_by="Department.name",
    )

    requests = db.relationship("MaterialRequest", back_populates="business_unit", lazy=True)

    def __repr__(self):
        return f"<BusinessUnit {self.code}>"


class Department(db.Model):
    """Organizational sub-unit. Scopes users, approver assignments and requests."""

    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)

    code = db.Column(db.String(10), nullable=False, unique=True, index=True)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)

    business_unit_id = db.Column(
        db.Integer,
        db.ForeignKey("business_units.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    business_unit = db.relationship("BusinessUnit", back_populates="departments")

    # Unordered here; resolution order lives in services.approvers.
    approvers = db.relationship("DepartmentApprover", back_populates="department", lazy=True)

    users = db.relationship("User", back_populates="mrs_department", lazy=True)

    requests = db.relationship("MaterialRequest", back_populates="department", lazy=True)

    def __repr__(self):
        return f"<Department {self.code}>"


class DepartmentApprover(db.Model):
    """
    Approver assignment (priority list entry).

    A user holds at most one assignment of each type per department, but may be
    both RECOMMENDING and FINAL (two rows). Several users may share a type; the
    most recently created active row wins resolution.
    """

    __tablename__ = "department_approvers"

    id = db.Column(db.Integer, primary_key=True)

    department_id = db.Column(
        db.Integer,
        db.ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    approver_type = _enum_column(ApproverType, nullable=False, index=True)

    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    department = db.relationship("Department", back_populates="approvers")
    user = db.relationship("User", back_populates="approver_assignments")

    __table_args__ = (
        db.UniqueConstraint(
            "department_id", "user_id", "approver_type", name="uq_department_user_approver_type"
        ),
    )

    def __repr__(self):
        return f"<DepartmentApprover dept={self.department_id} user={self.user_id} {self.approver_type.value}>"


class User(UserMixin, db.Model):
    """System login user. Optional home Department (independent of approver assignments)."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    first_name = db.Column(db.String(120), nullable=False)
    last_name = db.Column(db.String(120), nullable=False)

    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)

    role = _enum_column(Role, nullable=False, default=Role.STAFF, index=True)

    contact_no = db.Column(db.String(50), nullable=True)

    mrs_department_id = db.Column(
        db.Integer,
        db.ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    mrs_department = db.relationship("Department", back_populates="users")

    approver_assignments = db.relationship(
        "DepartmentApprover",
        back_populates="user",
        cascade="all, delete-orphan",
        lazy=True,
    )

    def set_password(self, password: str):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password: str) -> bool:
        return check_password_hash(self.password_hash, password)

    def __repr__(self):
        return f"<User {self.email}>"


# ---------------------------------------------------------------------
# Material requests
# ---------------------------------------------------------------------
class MaterialRequest(db.Model):
    __tablename__ = "material_requests"

    id = db.Column(db.Integer, primary_key=True)

    doc_no = db.Column(db.String(30), nullable=False, unique=True, index=True)
    series = _enum_column(Series, nullable=False, index=True)
    type = _enum_column(RequestType, nullable=False, index=True)
    status = _enum_column(RequestStatus, nullable=False, default=RequestStatus.DRAFT, index=True)

    date_prepared = db.Column(db.DateTime, nullable=False)
    date_required = db.Column(db.DateTime, nullable=False)

    business_unit_id = db.Column(
        db.Integer,
        db.ForeignKey("business_units.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    department_id = db.Column(
        db.Integer,
        db.ForeignKey("departments.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )

    charge_to = db.Column(db.String(255), nullable=True)
    purpose = db.Column(db.Text, nullable=True)
    remarks = db.Column(db.Text, nullable=True)
    deliver_to = db.Column(db.String(255), nullable=True)

    freight = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    confirmation_no = db.Column(db.String(100), nullable=True, index=True)

    requested_by_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    # Recommending stage
    rec_approver_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    rec_approval_status = _enum_column(ApprovalStatus, nullable=True)
    rec_approval_date = db.Column(db.DateTime, nullable=True)

    # Final stage
    final_approver_id = db.Column(
        db.Integer,
        db.ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    final_approval_status = _enum_column(ApprovalStatus, nullable=True)
    final_approval_date = db.Column(db.DateTime, nullable=True)

    date_approved = db.Column(db.DateTime, nullable=True)
    date_posted = db.Column(db.DateTime, nullable=True, index=True)
    date_received = db.Column(db.DateTime, nullable=True, index=True)
    date_revised = db.Column(db.DateTime, nullable=True)

    # Receiving phase fields
    supplier_bp_code = db.Column(db.String(100), nullable=True)
    supplier_name = db.Column(db.String(255), nullable=True)
    purchase_order_number = db.Column(db.String(100), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    business_unit = db.relationship("BusinessUnit", back_populates="requests")
    department = db.relationship("Department", back_populates="requests")

    requested_by = db.relationship("User", foreign_keys=[requested_by_id])
    rec_approver = db.relationship("User", foreign_keys=[rec_approver_id])
    final_approver = db.relationship("User", foreign_keys=[final_approver_id])

    items = db.relationship(
        "MaterialRequestItem",
        back_populates="material_request",
        cascade="all, delete-orphan",
        order_by="MaterialRequestItem.line_no",
        lazy=True,
    )

    @property
    def status_label(self) -> str:
        return REQUEST_STATUS_LABELS.get(self.status, str(self.status))

    @property
    def is_editable(self) -> bool:
        return self.status in EDITABLE_STATUSES

    def __repr__(self):
        return f"<MaterialRequest {self.doc_no} {self.status.value if self.status else None}>"


class MaterialRequestItem(db.Model):
    __tablename__ = "material_request_items"

    id = db.Column(db.Integer, primary_key=True)

    material_request_id = db.Column(
        db.Integer,
        db.ForeignKey("material_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    line_no = db.Column(db.Integer, nullable=False, default=1)

    item_code = db.Column(db.String(100), nullable=True)
    description = db.Column(db.Text, nullable=False)
    uom = db.Column(db.String(50), nullable=False)

    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    unit_price = db.Column(db.Numeric(12, 2), nullable=True)
    # Denormalized quantity * unit_price for display
    total_price = db.Column(db.Numeric(12, 2), nullable=True)

    remarks = db.Column(db.Text, nullable=True)

    # Display hint: item_code was typed by the requester, not picked from the catalog
    is_new = db.Column(db.Boolean, default=True, nullable=False)

    created_at = db.Column(db.DateTime, default=utcnow)

    material_request = db.relationship("MaterialRequest", back_populates="items")


# ---------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------
class AuditLog(db.Model):
    """Who did what to which entity, with before/after snapshots."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    user_email_snapshot = db.Column(db.String(255), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(30), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
