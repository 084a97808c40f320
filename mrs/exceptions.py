"""
mrs/exceptions.py

Typed business-rule exceptions for the Material Request System.

Hierarchy:

    MrsError (base)
    |
    +-- ValidationError     payload failed schema checks      VALIDATION_ERROR
    +-- AuthorizationError  role / owner / approver mismatch  NOT_AUTHORIZED
    +-- StateError          request not in required status    INVALID_STATE
    +-- ReferentialError    delete blocked by dependent rows  HAS_DEPENDENTS
    +-- NotFoundError       id does not resolve to a row      NOT_FOUND

IMPORTANT:
- Service functions raise these; the service_action boundary in
  mrs.services.base converts them into ActionResult(success=False, message=...).
- Messages are user-facing. Never put internals (SQL, ids of other users) in them.
"""

from __future__ import annotations


class MrsError(Exception):
    """Base class for expected business-rule failures."""

    code: str = "MRS_ERROR"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(MrsError):
    code = "VALIDATION_ERROR"

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)


class AuthorizationError(MrsError):
    code = "NOT_AUTHORIZED"

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message)


class StateError(MrsError):
    code = "INVALID_STATE"


class ReferentialError(MrsError):
    code = "HAS_DEPENDENTS"


class NotFoundError(MrsError):
    code = "NOT_FOUND"

    def __init__(self, entity: str):
        self.entity = entity
        super().__init__(f"{entity} not found")
