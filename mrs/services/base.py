"""
mrs/services/base.py

Uniform operation result and the service boundary decorator.

Every service operation:
- takes an explicit Actor as its first argument (None means "not logged in"),
- raises mrs.exceptions.MrsError subclasses for expected business-rule failures,
- commits exactly once on success.

service_action() is the boundary: it rolls the session back on ANY failure and
converts it into ActionResult(success=False, ...). Nothing escapes to the caller.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Callable, Optional

from ..exceptions import MrsError
from ..extensions import db

logger = logging.getLogger(__name__)

UNAUTHENTICATED = "UNAUTHENTICATED"
UNEXPECTED = "UNEXPECTED"


@dataclass
class ActionResult:
    success: bool
    message: str
    data: Optional[Any] = None
    # Machine-readable failure code (exception code); used by routes for the HTTP status only.
    error_code: Optional[str] = field(default=None, compare=False)

    @classmethod
    def ok(cls, message: str, data: Optional[Any] = None) -> "ActionResult":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, error_code: Optional[str] = None) -> "ActionResult":
        return cls(success=False, message=message, error_code=error_code)

    def to_dict(self) -> dict:
        body = {"success": self.success, "message": self.message}
        if self.data is not None:
            body["data"] = self.data
        return body


def service_action(failure_message: str) -> Callable[[Callable[..., ActionResult]], Callable[..., ActionResult]]:
    """
    Decorator: normalize every outcome of a service operation into an ActionResult.

    - actor is None          -> "Unauthorized"
    - MrsError               -> its message (logged at INFO)
    - any other exception    -> failure_message (logged with traceback)
    """

    def decorator(func: Callable[..., ActionResult]) -> Callable[..., ActionResult]:
        @wraps(func)
        def wrapper(actor, *args: Any, **kwargs: Any) -> ActionResult:
            if actor is None:
                return ActionResult.fail("Unauthorized", UNAUTHENTICATED)

            try:
                return func(actor, *args, **kwargs)
            except MrsError as exc:
                db.session.rollback()
                logger.info("%s rejected for user %s: %s", func.__name__, actor.id, exc.message)
                return ActionResult.fail(exc.message, exc.code)
            except Exception:
                db.session.rollback()
                logger.exception("Unexpected error in %s", func.__name__)
                return ActionResult.fail(failure_message, UNEXPECTED)

        return wrapper

    return decorator
