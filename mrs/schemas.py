"""
mrs/schemas.py

Pydantic payload schemas for every mutating operation.

- Payloads are plain dicts (JSON bodies). Unknown keys are ignored, so a client-supplied
  "total" or "status" can never reach the database.
- parse_payload() turns the first pydantic error into mrs.exceptions.ValidationError with
  the failing field path, e.g. "Validation error in items.0.quantity: Quantity must be positive".
"""

import re
from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, List, Optional, Type, TypeVar

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from .exceptions import ValidationError
from .models import ApprovalStatus, ApproverType, RequestStatus, RequestType, Role, Series
from .services.totals import CENT

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


# =========================
# ===== Field helpers
# =========================
def _required_text(message: str, max_length: Optional[int] = None, max_message: Optional[str] = None):
    def check(value: str) -> str:
        value = (value or "").strip()
        if not value:
            raise PydanticCustomError("required", message)
        if max_length is not None and len(value) > max_length:
            raise PydanticCustomError("too_long", max_message or f"Must be {max_length} characters or less")
        return value

    return check


def _optional_text(value: Optional[str]) -> Optional[str]:
    """Empty strings become None (stored as NULL, like the rest of the app)."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _email(value: str) -> str:
    value = (value or "").strip().lower()
    if not EMAIL_RE.match(value):
        raise PydanticCustomError("email", "Invalid email address")
    return value


def _positive(message: str):
    def check(value: Decimal) -> Decimal:
        if value <= 0:
            raise PydanticCustomError("positive", message)
        return value

    return check


def _cents(message: str):
    """Amounts are entered in 0.01 steps; finer values are rejected, not rounded."""
    def check(value: Optional[Decimal]) -> Optional[Decimal]:
        if value is not None and value != value.quantize(CENT):
            raise PydanticCustomError("precision", message)
        return value

    return check


OptionalText = Annotated[Optional[str], AfterValidator(_optional_text)]
Email = Annotated[str, AfterValidator(_email)]

CodeText = Annotated[
    str,
    AfterValidator(_required_text("Code is required", 10, "Code must be 10 characters or less")),
]
NameText = Annotated[
    str,
    AfterValidator(_required_text("Name is required", 100, "Name must be 100 characters or less")),
]


class PayloadBase(BaseModel):
    model_config = ConfigDict(extra="ignore")


# =========================================
# =========== Material requests ===========
# =========================================
class MaterialRequestItemIn(PayloadBase):
    # is_new comes first so the item_code validator can see it.
    is_new: bool = True
    item_code: OptionalText = Field(default=None, validate_default=True)
    description: Annotated[str, AfterValidator(_required_text("Description is required"))]
    uom: Annotated[str, AfterValidator(_required_text("Unit of measurement is required"))]
    quantity: Annotated[
        Decimal,
        AfterValidator(_positive("Quantity must be positive")),
        AfterValidator(_cents("Quantity must have at most 2 decimal places")),
    ]
    unit_price: Annotated[Optional[Decimal], AfterValidator(_cents("Unit price must have at most 2 decimal places"))] = None
    remarks: OptionalText = None

    @field_validator("item_code")
    @classmethod
    def _existing_items_need_code(cls, value: Optional[str], info: ValidationInfo) -> Optional[str]:
        if not value and info.data.get("is_new") is False:
            raise PydanticCustomError("item_code_required", "Item code is required for existing items")
        return value


class _MaterialRequestFields(PayloadBase):
    type: RequestType
    date_prepared: datetime
    date_required: datetime
    business_unit_id: int
    department_id: Optional[int] = None
    charge_to: OptionalText = None
    purpose: OptionalText = None
    remarks: OptionalText = None
    deliver_to: OptionalText = None
    freight: Decimal = Decimal("0")
    discount: Decimal = Decimal("0")
    items: List[MaterialRequestItemIn]

    @field_validator("items")
    @classmethod
    def _at_least_one_item(cls, value: List[MaterialRequestItemIn]) -> List[MaterialRequestItemIn]:
        if not value:
            raise PydanticCustomError("items_required", "At least one item is required")
        return value

    @field_validator("date_prepared", "date_required")
    @classmethod
    def _naive_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value

    @field_validator("freight", "discount")
    @classmethod
    def _not_negative(cls, value: Decimal) -> Decimal:
        if value < 0:
            raise PydanticCustomError("negative", "Must not be negative")
        return _cents("Must have at most 2 decimal places")(value)


class MaterialRequestCreate(_MaterialRequestFields):
    series: Series


class MaterialRequestUpdate(_MaterialRequestFields):
    pass


class ApprovalDecision(PayloadBase):
    status: ApprovalStatus
    remarks: OptionalText = None

    @field_validator("status")
    @classmethod
    def _decision_only(cls, value: ApprovalStatus) -> ApprovalStatus:
        if value == ApprovalStatus.PENDING:
            raise PydanticCustomError("decision", "Decision must be APPROVED or DISAPPROVED")
        return value


class PostPayload(PayloadBase):
    confirmation_no: OptionalText = None


class ReceivePayload(PayloadBase):
    supplier_bp_code: OptionalText = None
    supplier_name: OptionalText = None
    purchase_order_number: OptionalText = None


class RequestFilters(PayloadBase):
    status: Optional[RequestStatus] = None
    business_unit_id: Optional[int] = None
    department_id: Optional[int] = None
    requested_by_id: Optional[int] = None
    type: Optional[RequestType] = None


class QueueFilters(PayloadBase):
    business_unit_id: Optional[int] = None
    search: OptionalText = None


class DocNoQuery(PayloadBase):
    series: Series


# =========================================
# ============== Master data ==============
# =========================================
class BusinessUnitCreate(PayloadBase):
    code: CodeText
    name: NameText
    description: OptionalText = None


class BusinessUnitUpdate(BusinessUnitCreate):
    is_active: bool


class DepartmentCreate(PayloadBase):
    code: CodeText
    name: NameText
    description: OptionalText = None
    business_unit_id: int


class DepartmentUpdate(DepartmentCreate):
    is_active: bool


class ApproverAssign(PayloadBase):
    department_id: int
    user_id: int
    approver_type: ApproverType


# =========================================
# ================ Users ==================
# =========================================
FirstName = Annotated[str, AfterValidator(_required_text("First name is required"))]
LastName = Annotated[str, AfterValidator(_required_text("Last name is required"))]


class LoginPayload(PayloadBase):
    email: Email
    password: str = Field(min_length=1)


class AdminBootstrap(PayloadBase):
    first_name: FirstName = "System"
    last_name: LastName = "Administrator"
    email: Email
    password: str = Field(min_length=6)


class UserCreate(PayloadBase):
    first_name: FirstName
    last_name: LastName
    email: Email
    password: str = Field(min_length=6)
    contact_no: OptionalText = None
    role: Role
    mrs_department_id: Optional[int] = None


class UserUpdate(PayloadBase):
    first_name: FirstName
    last_name: LastName
    email: Email
    contact_no: OptionalText = None
    role: Role
    mrs_department_id: Optional[int] = None
    # Optional admin password reset
    password: Optional[str] = Field(default=None, min_length=6)


class ProfileUpdate(PayloadBase):
    first_name: FirstName
    last_name: LastName
    email: Email
    contact_no: OptionalText = None


class PasswordChange(PayloadBase):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)
    confirm_password: str

    @field_validator("confirm_password")
    @classmethod
    def _passwords_match(cls, value: str, info: ValidationInfo) -> str:
        new_password = info.data.get("new_password")
        if new_password is not None and value != new_password:
            raise PydanticCustomError("password_mismatch", "Passwords don't match")
        return value


# =========================================
# ================ Parsing ================
# =========================================
SchemaT = TypeVar("SchemaT", bound=BaseModel)


def parse_payload(schema: Type[SchemaT], payload) -> SchemaT:
    """Validate payload against schema, raising ValidationError for the first failing field."""
    try:
        return schema.model_validate(payload if payload is not None else {})
    except PydanticValidationError as exc:
        first = exc.errors()[0]
        path = ".".join(str(part) for part in first.get("loc", ()))
        message = first.get("msg", "Invalid value")
        if path:
            raise ValidationError(f"Validation error in {path}: {message}", field=path) from exc
        raise ValidationError(f"Validation error: {message}") from exc
