"""
mrs/security.py

Access control helpers for the Material Request System.

Key rules:
- Clients are never trusted; every permission check runs on the server.
- Services never read the session. Routes convert flask_login.current_user into an
  explicit Actor and pass it into every service call; role checks below are pure
  predicates over that Actor.
- ADMIN / MANAGER: master data administration, edit/delete any editable request.
- PURCHASER: posting and receiving. STOCKROOM: receiving.
- VIEWER: read-only (no mutating requests), except explicit self-service actions.

HTTP edge:
- viewer_readonly_guard() rejects POST/PUT/PATCH/DELETE from Viewers before any view runs.
  Wired via app.before_request in the app factory.
"""

from __future__ import annotations

from dataclasses import dataclass
from functools import wraps
from typing import Any, Callable, Iterable, Optional

from flask import request
from flask_login import current_user

from .models import Role

MUTATING_METHODS = {"POST", "PUT", "PATCH", "DELETE"}

ADMIN_ROLES = frozenset({Role.ADMIN, Role.MANAGER})
POSTING_ROLES = frozenset({Role.ADMIN, Role.MANAGER, Role.PURCHASER})
RECEIVING_ROLES = frozenset({Role.ADMIN, Role.MANAGER, Role.PURCHASER, Role.STOCKROOM})
COORDINATOR_ROLES = RECEIVING_ROLES
APPROVER_ELIGIBLE_ROLES = frozenset(
    {Role.ADMIN, Role.MANAGER, Role.PURCHASER, Role.ACCTG, Role.TREASURY}
)


@dataclass(frozen=True)
class Actor:
    """Identity of the caller of a service operation."""

    id: int
    role: Role
    email: str | None = None


def actor_for(user) -> Actor:
    """Build an Actor from a User row (or flask_login current_user proxy)."""
    return Actor(id=int(user.id), role=Role(user.role), email=getattr(user, "email", None))


def current_actor() -> Optional[Actor]:
    """Actor for the logged-in user, or None if anonymous."""
    if not current_user.is_authenticated:
        return None
    return actor_for(current_user)


# ---------------------------------------------------------------------
# Role predicates
# ---------------------------------------------------------------------
def has_role(actor: Optional[Actor], roles: Iterable[Role]) -> bool:
    return actor is not None and actor.role in frozenset(roles)


def is_admin_or_manager(actor: Optional[Actor]) -> bool:
    return has_role(actor, ADMIN_ROLES)


def can_post(actor: Optional[Actor]) -> bool:
    return has_role(actor, POSTING_ROLES)


def can_receive(actor: Optional[Actor]) -> bool:
    return has_role(actor, RECEIVING_ROLES)


def can_view_coordinator_queues(actor: Optional[Actor]) -> bool:
    return has_role(actor, COORDINATOR_ROLES)


def can_edit_request(actor: Optional[Actor], requested_by_id: int) -> bool:
    """Owner, or ADMIN/MANAGER. Status is checked separately by the engine."""
    if actor is None:
        return False
    return actor.id == requested_by_id or is_admin_or_manager(actor)


# ---------------------------------------------------------------------
# HTTP guards
# ---------------------------------------------------------------------
def _forbidden():
    """Consistent JSON 403 body (same shape as every service result)."""
    return {"success": False, "message": "Insufficient permissions"}, 403


def viewer_readonly_guard():
    """
    Reject mutating requests from Viewers.

    Self-service endpoints that stay open:
    - auth.logout
    - settings.update_profile
    - settings.change_password
    """
    if request.method not in MUTATING_METHODS:
        return None

    if not current_user.is_authenticated:
        return None

    if Role(current_user.role) != Role.VIEWER:
        return None

    endpoint = (request.endpoint or "").strip()
    allow_mutating_endpoints = {"auth.logout", "settings.update_profile", "settings.change_password"}
    if endpoint in allow_mutating_endpoints:
        return None

    return _forbidden()


def roles_required(*roles: Role) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """
    Decorator factory: route allowed only for the given roles.

    Used for whole admin/coordinator areas. Services still re-check roles, so the
    decorator is a first filter, not the only one.
    """
    allowed = frozenset(roles)

    def decorator(view_func: Callable[..., Any]) -> Callable[..., Any]:
        @wraps(view_func)
        def wrapper(*args: Any, **kwargs: Any):
            if not has_role(current_actor(), allowed):
                return _forbidden()
            return view_func(*args, **kwargs)

        return wrapper

    return decorator


admin_required = roles_required(*ADMIN_ROLES)
