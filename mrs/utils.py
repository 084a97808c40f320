"""
Utility functions shared by the blueprints. This includes:
- json_payload / query_args: read request input as plain dicts for the service layer.
- respond: render an ActionResult as a JSON response with the matching HTTP status.
"""

from flask import jsonify, request

from .services.base import UNAUTHENTICATED, UNEXPECTED, ActionResult

# Failure code -> HTTP status. Anything not listed is a business-rule failure (400).
STATUS_BY_ERROR_CODE = {
    UNAUTHENTICATED: 401,
    "NOT_AUTHORIZED": 403,
    "NOT_FOUND": 404,
    UNEXPECTED: 500,
}


def json_payload() -> dict:
    """JSON body of the current request; {} when missing or not an object."""
    payload = request.get_json(silent=True)
    return payload if isinstance(payload, dict) else {}


def query_args() -> dict:
    """Query string as a dict, dropping empty values (?status=&type=ITEM -> {"type": "ITEM"})."""
    return {key: value for key, value in request.args.items() if value != ""}


def respond(result: ActionResult):
    if result.success:
        return jsonify(result.to_dict()), 200
    return jsonify(result.to_dict()), STATUS_BY_ERROR_CODE.get(result.error_code, 400)


def error_response(message: str, status: int):
    """Uniform body for failures raised outside the service layer (404 routes, CSRF, login)."""
    return jsonify({"success": False, "message": message}), status
