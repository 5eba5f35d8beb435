from flask import current_app, jsonify, request

from ..extensions import db
from ..errors import AuthError, ErrorCode


def json_body() -> dict:
    """Request JSON object, or {} when the body is missing or not an object."""
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def error_response(error: AuthError, status: int | None = None):
    """Render an AuthError as {"error", "code"} and roll back the unit of work."""
    db.session.rollback()
    return jsonify(error.to_dict()), status or error.status_code


def internal_error_response(log_message: str):
    current_app.logger.exception(log_message)
    db.session.rollback()
    return jsonify({"error": "Internal server error", "code": ErrorCode.INTERNAL_ERROR.value}), 500


def client_ip() -> str | None:
    """Originating client address, honoring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.headers.get("X-Real-IP") or request.remote_addr
