"""
Pytest fixtures for the material request test suite.

Layout:
- app:   Flask app built with TestConfig (in-memory SQLite), tables created per test.
- ctx:   pushed application context for service-level tests.
- make_* factories: commit master data and return the ORM rows.
- request_payload: a valid create/update payload (2 items, freight 10, discount 5 -> total 205).
- login: log a Flask test client in through /auth/login.

Route tests must NOT hold the `ctx` fixture while issuing requests: Flask reuses an
already pushed application context (and its `g`) for test requests, which would leak
the Flask-Login user between clients. They build data inside `with app.app_context()`.
"""

from __future__ import annotations

import itertools
import logging
from datetime import datetime
from types import SimpleNamespace

import pytest

from config import TestConfig
from mrs import create_app
from mrs.extensions import db
from mrs.models import ApproverType, BusinessUnit, Department, DepartmentApprover, Role, User

DEFAULT_PASSWORD = "secret123"

_sequence = itertools.count(1)


# =============================================================================
# App / database
# =============================================================================


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def ctx(app):
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# Logging
# =============================================================================


@pytest.fixture
def mrs_logs(app, caplog):
    """Capture INFO records from the mrs logger tree."""
    caplog.set_level(logging.INFO, logger="mrs")
    return caplog


# =============================================================================
# Factories (require an active application context when called)
# =============================================================================


@pytest.fixture
def make_business_unit():
    def _make(code: str | None = None, name: str = "Business Unit", is_active: bool = True) -> BusinessUnit:
        unit = BusinessUnit(code=code or f"BU{next(_sequence)}", name=name, is_active=is_active)
        db.session.add(unit)
        db.session.commit()
        return unit

    return _make


@pytest.fixture
def make_department(make_business_unit):
    def _make(business_unit: BusinessUnit | None = None, code: str | None = None, name: str = "Department") -> Department:
        business_unit = business_unit or make_business_unit()
        department = Department(
            code=code or f"D{next(_sequence)}",
            name=name,
            business_unit_id=business_unit.id,
            is_active=True,
        )
        db.session.add(department)
        db.session.commit()
        return department

    return _make


@pytest.fixture
def make_user():
    def _make(
        role: Role = Role.STAFF,
        department: Department | None = None,
        email: str | None = None,
        password: str = DEFAULT_PASSWORD,
        first_name: str = "Test",
        last_name: str | None = None,
        is_active: bool = True,
    ) -> User:
        n = next(_sequence)
        user = User(
            first_name=first_name,
            last_name=last_name or f"User{n}",
            email=email or f"user{n}@example.com",
            role=role,
            mrs_department_id=department.id if department is not None else None,
            is_active=is_active,
        )
        user.set_password(password)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def assign_approver():
    def _assign(
        department: Department,
        user: User,
        approver_type: ApproverType,
        is_active: bool = True,
        created_at: datetime | None = None,
    ) -> DepartmentApprover:
        assignment = DepartmentApprover(
            department_id=department.id,
            user_id=user.id,
            approver_type=approver_type,
            is_active=is_active,
        )
        if created_at is not None:
            assignment.created_at = created_at
        db.session.add(assignment)
        db.session.commit()
        return assignment

    return _assign


@pytest.fixture
def request_payload():
    def _payload(business_unit_id: int, department_id: int | None = None, **overrides) -> dict:
        payload = {
            "series": "PO",
            "type": "ITEM",
            "date_prepared": "2026-01-10T00:00:00",
            "date_required": "2026-01-20T00:00:00",
            "business_unit_id": business_unit_id,
            "department_id": department_id,
            "purpose": "Replacement laptops",
            "freight": 10,
            "discount": 5,
            "items": [
                {"description": "Laptop bag", "uom": "pc", "quantity": 2, "unit_price": 50},
                {"description": "Docking station", "uom": "pc", "quantity": 1, "unit_price": 100},
            ],
        }
        payload.update(overrides)
        return payload

    return _payload


# =============================================================================
# Workflow fixture: one department with both approver stages
# =============================================================================


@pytest.fixture
def org(ctx, make_business_unit, make_department, make_user, assign_approver):
    """
    Business unit MAIN with department IT: requester, one approver per stage,
    plus purchaser and stockroom users.
    """
    unit = make_business_unit(code="MAIN")
    department = make_department(unit, code="IT")
    requester = make_user(Role.STAFF, department=department)
    rec_approver = make_user(Role.MANAGER)
    final_approver = make_user(Role.ACCTG)
    purchaser = make_user(Role.PURCHASER)
    stockroom = make_user(Role.STOCKROOM)
    assign_approver(department, rec_approver, ApproverType.RECOMMENDING)
    assign_approver(department, final_approver, ApproverType.FINAL)

    return SimpleNamespace(
        unit=unit,
        department=department,
        requester=requester,
        rec_approver=rec_approver,
        final_approver=final_approver,
        purchaser=purchaser,
        stockroom=stockroom,
    )


# =============================================================================
# HTTP helpers
# =============================================================================


@pytest.fixture
def login():
    def _login(client, email: str, password: str = DEFAULT_PASSWORD):
        response = client.post("/auth/login", json={"email": email, "password": password})
        assert response.status_code == 200, response.get_json()
        return response

    return _login
