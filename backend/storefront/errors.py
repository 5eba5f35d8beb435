# Overview: Closed error taxonomy shared by services, guards, and routes.

"""
Authentication error types.

Every failure an auth operation can produce is an ErrorCode member. Services
raise one of the AuthError subclasses below; routes render it as
{"error": message, "code": code} with the subclass status code.
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    # Input validation
    MISSING_REQUIRED_FIELDS = "MISSING_REQUIRED_FIELDS"
    INVALID_EMAIL = "INVALID_EMAIL"
    INVALID_PASSWORD = "INVALID_PASSWORD"
    INVALID_NAME = "INVALID_NAME"
    INVALID_IMAGE = "INVALID_IMAGE"
    MISSING_TOKEN = "MISSING_TOKEN"
    MISSING_EMAIL = "MISSING_EMAIL"
    MISSING_USER_ID = "MISSING_USER_ID"
    MISSING_PASSWORD = "MISSING_PASSWORD"
    EMAIL_ALREADY_VERIFIED = "EMAIL_ALREADY_VERIFIED"

    # Credentials and sessions
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"
    AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    INVALID_SESSION = "INVALID_SESSION"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    # Single-use verification tokens
    INVALID_TOKEN = "INVALID_TOKEN"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"

    # Entities
    ADMIN_NOT_FOUND = "ADMIN_NOT_FOUND"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    EMAIL_EXISTS = "EMAIL_EXISTS"

    INTERNAL_ERROR = "INTERNAL_ERROR"


class AuthError(Exception):
    """Base class for failures surfaced to API clients."""

    status_code = 500

    def __init__(self, code: ErrorCode, message: str, status_code: int | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code.value}


class ValidationError(AuthError):
    """400-level input problem, detected before any store access."""

    status_code = 400


class AuthenticationError(AuthError):
    """401: bad credentials or a missing, invalid, or expired token."""

    status_code = 401


class NotFoundError(AuthError):
    """404: a referenced entity does not exist."""

    status_code = 404


class ForbiddenError(AuthError):
    """403: credentials are correct but the account may not sign in yet."""

    status_code = 403


class ConflictError(AuthError):
    """Duplicate email. Reported as 400 to match the existing API surface."""

    status_code = 400


class InternalError(AuthError):
    """500: unexpected store or transport failure. Message is always generic."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(ErrorCode.INTERNAL_ERROR, message)
