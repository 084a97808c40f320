"""
mrs/services/users.py

User administration and self-service profile operations.

Administration (ADMIN / MANAGER only):
- create_user / update_user / delete_user / list_users / get_user

Self-service (any logged-in user, including VIEWER):
- update_profile: own names, email, contact number
- change_password: verifies the current password first

SECURITY:
- Emails are stored lowercased and are unique.
- password_hash is never serialized or written to the audit trail.
- An admin cannot delete their own account.
"""

from __future__ import annotations

import logging

from ..audit import log_action, serialize_model
from ..exceptions import AuthorizationError, NotFoundError, ReferentialError, StateError, ValidationError
from ..extensions import db
from ..models import Department, MaterialRequest, User
from ..schemas import PasswordChange, ProfileUpdate, UserCreate, UserUpdate, parse_payload
from ..security import is_admin_or_manager
from .base import ActionResult, service_action
from .serializers import serialize_user

logger = logging.getLogger(__name__)


def _load_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User")
    return user


def _ensure_email_free(email: str, exclude_id=None, message: str = "Email is already taken") -> None:
    query = User.query.filter(User.email == email)
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first() is not None:
        raise StateError(message)


def _validate_department(department_id) -> None:
    if department_id is not None and db.session.get(Department, department_id) is None:
        raise ValidationError(
            "Validation error in mrs_department_id: Department not found",
            field="mrs_department_id",
        )


# ---------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------
@service_action("Failed to create user")
def create_user(actor, payload) -> ActionResult:
    if not is_admin_or_manager(actor):
        raise AuthorizationError("You don't have permission to create users")

    data = parse_payload(UserCreate, payload)
    _ensure_email_free(data.email)
    _validate_department(data.mrs_department_id)

    user = User(
        first_name=data.first_name,
        last_name=data.last_name,
        email=data.email,
        contact_no=data.contact_no,
        role=data.role,
        mrs_department_id=data.mrs_department_id,
        is_active=True,
    )
    user.set_password(data.password)
    db.session.add(user)
    db.session.flush()

    log_action(actor, user, "CREATE", after=serialize_model(user))
    db.session.commit()

    logger.info("User %s created with role %s by user %s", user.email, user.role.value, actor.id)
    return ActionResult.ok("User created successfully", serialize_user(user))


@service_action("Failed to update user")
def update_user(actor, user_id: int, payload) -> ActionResult:
    if not is_admin_or_manager(actor):
        raise AuthorizationError("You don't have permission to update users")

    data = parse_payload(UserUpdate, payload)
    user = _load_user(user_id)
    _ensure_email_free(data.email, exclude_id=user.id, message="Email is already taken by another user")
    _validate_department(data.mrs_department_id)

    before = serialize_model(user)
    user.first_name = data.first_name
    user.last_name = data.last_name
    user.email = data.email
    user.contact_no = data.contact_no
    user.role = data.role
    user.mrs_department_id = data.mrs_department_id
    if data.password:
        user.set_password(data.password)
    db.session.flush()

    log_action(actor, user, "UPDATE", before=before, after=serialize_model(user))
    db.session.commit()

    return ActionResult.ok("User updated successfully", serialize_user(user))


@service_action("Failed to delete user")
def delete_user(actor, user_id: int) -> ActionResult:
    if not is_admin_or_manager(actor):
        raise AuthorizationError("You don't have permission to delete users")

    user = _load_user(user_id)
    if user.id == actor.id:
        raise StateError("You cannot delete your own account")
    if MaterialRequest.query.filter_by(requested_by_id=user.id).count():
        raise ReferentialError("Cannot delete user with existing requests")

    email = user.email
    log_action(actor, user, "DELETE", before=serialize_model(user))
    db.session.delete(user)
    db.session.commit()

    logger.info("User %s deleted by user %s", email, actor.id)
    return ActionResult.ok("User deleted successfully")


@service_action("Failed to load users")
def list_users(actor) -> ActionResult:
    if not is_admin_or_manager(actor):
        raise AuthorizationError()
    users = User.query.order_by(User.created_at.desc(), User.id.desc()).all()
    return ActionResult.ok("OK", {"users": [serialize_user(u) for u in users]})


@service_action("Failed to load user")
def get_user(actor, user_id: int) -> ActionResult:
    if actor.id != user_id and not is_admin_or_manager(actor):
        raise AuthorizationError()
    return ActionResult.ok("OK", serialize_user(_load_user(user_id)))


# ---------------------------------------------------------------------
# Self-service
# ---------------------------------------------------------------------
@service_action("Failed to update profile")
def update_profile(actor, payload) -> ActionResult:
    data = parse_payload(ProfileUpdate, payload)
    user = _load_user(actor.id)
    _ensure_email_free(data.email, exclude_id=user.id, message="Email is already taken by another user")

    before = serialize_model(user)
    user.first_name = data.first_name
    user.last_name = data.last_name
    user.email = data.email
    user.contact_no = data.contact_no
    db.session.flush()

    log_action(actor, user, "UPDATE", before=before, after=serialize_model(user))
    db.session.commit()

    return ActionResult.ok("Profile updated successfully", serialize_user(user))


@service_action("Failed to change password")
def change_password(actor, payload) -> ActionResult:
    data = parse_payload(PasswordChange, payload)
    user = _load_user(actor.id)

    if not user.check_password(data.current_password):
        raise ValidationError("Current password is incorrect", field="current_password")

    user.set_password(data.new_password)
    db.session.flush()

    # Snapshot excludes password_hash; the entry only records that a change happened.
    log_action(actor, user, "UPDATE", after={"password_changed": True})
    db.session.commit()

    logger.info("User %s changed their password", actor.id)
    return ActionResult.ok("Password changed successfully")
