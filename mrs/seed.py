"""
mrs/seed.py

Seed demo master data (flask --app run.py seed-demo).

Rules:
- Safe to run multiple times (idempotent): rows are matched by code / email and
  only missing ones are created. Existing rows are never modified.
- Seeds one business unit with two departments:
  - IT: recommending AND final approver (full two-stage workflow)
  - OPS: recommending approver only (final stage is skipped)

NOTE:
- Demo users share DEMO_PASSWORD. Never run this against a production database.
"""

from __future__ import annotations

from typing import Dict

from .extensions import db
from .models import ApproverType, BusinessUnit, Department, DepartmentApprover, Role, User

DEMO_PASSWORD = "demo1234"

DEMO_BUSINESS_UNIT = ("MAIN", "Main Office", "Demo business unit")

DEMO_DEPARTMENTS = [
    ("IT", "Information Technology"),
    ("OPS", "Operations"),
]

# (email, first_name, last_name, role, home department code)
DEMO_USERS = [
    ("admin@example.com", "Ada", "Admin", Role.ADMIN, None),
    ("manager@example.com", "Mario", "Manager", Role.MANAGER, "IT"),
    ("acctg@example.com", "Alex", "Accounting", Role.ACCTG, "IT"),
    ("purchaser@example.com", "Pat", "Purchaser", Role.PURCHASER, None),
    ("stockroom@example.com", "Sam", "Stockroom", Role.STOCKROOM, None),
    ("staff@example.com", "Sky", "Staff", Role.STAFF, "IT"),
    ("ops.staff@example.com", "Otis", "Operations", Role.STAFF, "OPS"),
    ("viewer@example.com", "Vic", "Viewer", Role.VIEWER, None),
]

# (department code, approver email, type)
DEMO_APPROVERS = [
    ("IT", "manager@example.com", ApproverType.RECOMMENDING),
    ("IT", "acctg@example.com", ApproverType.FINAL),
    ("OPS", "manager@example.com", ApproverType.RECOMMENDING),
]


def seed_demo_data() -> Dict[str, int]:
    """Create missing demo rows and return how many of each kind were created."""
    created = {"business_units": 0, "departments": 0, "users": 0, "approvers": 0}

    code, name, description = DEMO_BUSINESS_UNIT
    unit = BusinessUnit.query.filter_by(code=code).first()
    if unit is None:
        unit = BusinessUnit(code=code, name=name, description=description, is_active=True)
        db.session.add(unit)
        db.session.flush()
        created["business_units"] += 1

    departments: Dict[str, Department] = {}
    for dept_code, dept_name in DEMO_DEPARTMENTS:
        department = Department.query.filter_by(code=dept_code).first()
        if department is None:
            department = Department(code=dept_code, name=dept_name, business_unit_id=unit.id, is_active=True)
            db.session.add(department)
            db.session.flush()
            created["departments"] += 1
        departments[dept_code] = department

    users: Dict[str, User] = {}
    for email, first_name, last_name, role, dept_code in DEMO_USERS:
        user = User.query.filter_by(email=email).first()
        if user is None:
            user = User(
                email=email,
                first_name=first_name,
                last_name=last_name,
                role=role,
                mrs_department_id=departments[dept_code].id if dept_code else None,
                is_active=True,
            )
            user.set_password(DEMO_PASSWORD)
            db.session.add(user)
            db.session.flush()
            created["users"] += 1
        users[email] = user

    for dept_code, email, approver_type in DEMO_APPROVERS:
        department_id = departments[dept_code].id
        user_id = users[email].id
        exists = DepartmentApprover.query.filter_by(
            department_id=department_id, user_id=user_id, approver_type=approver_type
        ).first()
        if exists:
            continue
        db.session.add(
            DepartmentApprover(
                department_id=department_id,
                user_id=user_id,
                approver_type=approver_type,
                is_active=True,
            )
        )
        created["approvers"] += 1

    db.session.commit()
    return created
