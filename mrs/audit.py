"""
mrs/audit.py

Audit trail helpers for material requests and master data.

Each mutation records:
- the acting user (id plus an email snapshot that survives renames and deletes),
- the entity type and id, and the action name (CREATE, SUBMIT, REC_APPROVE, ...),
- column snapshots before and after the change,
- the client IP when called while serving an HTTP request.

IMPORTANT:
- log_action() only adds the row to the session. The service that owns the
  transaction commits it together with the change, or rolls both back.
- The actor is passed in; nothing here reads the login session.
"""

from __future__ import annotations

import json
from typing import Any, Dict, Optional

from flask import has_request_context, request

from .extensions import db
from .models import AuditLog

# Columns that never enter an audit snapshot.
EXCLUDED_COLUMNS = frozenset({"password_hash"})


def _snapshot_value(value: Any) -> Optional[str]:
    """Enums by value ("DRAFT"), everything else through str(); None stays None."""
    if value is None:
        return None
    enum_value = getattr(value, "value", None)
    if isinstance(enum_value, str):
        return enum_value
    return str(value)


def serialize_model(instance: Any) -> Dict[str, Optional[str]]:
    """Column snapshot of a model row (relationships are not followed)."""
    return {
        column.name: _snapshot_value(getattr(instance, column.name))
        for column in instance.__table__.columns
        if column.name not in EXCLUDED_COLUMNS
    }


def _dump(snapshot: Optional[Dict[str, Any]]) -> Optional[str]:
    return json.dumps(snapshot, ensure_ascii=False) if snapshot else None


def log_action(
    actor,
    entity: Any,
    action: str,
    *,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
) -> AuditLog:
    """
    Queue an AuditLog row for entity in the current session.

    actor may be None for system jobs. New rows must be flushed first so that
    entity.id is populated.
    """
    if getattr(entity, "id", None) is None:
        raise ValueError("log_action needs a flushed entity with an id")

    entry = AuditLog(
        user_id=getattr(actor, "id", None),
        user_email_snapshot=getattr(actor, "email", None),
        entity_type=type(entity).__name__,
        entity_id=int(entity.id),
        action=action,
        before_data=_dump(before),
        after_data=_dump(after),
        ip_address=request.remote_addr if has_request_context() else None,
    )
    db.session.add(entry)
    return entry
