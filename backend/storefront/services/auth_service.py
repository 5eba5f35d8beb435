# Overview: Credential lifecycle orchestration; login, logout, registration, password and email flows.

"""
Authentication Service

Coordinates the principal, session, and verification stores:

- create_admin / register_customer: principal + password credential
- login / logout / verify_session: bearer session lifecycle
- set_password: create or replace a principal's password credential
- request_email_verification / verify_email: email confirmation
- request_password_reset / reset_password: password reset by emailed token

SECURITY NOTES:
- Login never distinguishes "no such account" from "wrong password"; both
  raise INVALID_CREDENTIALS, and the unknown-account path still runs one
  key derivation so response timing does not reveal which case occurred.
- Customers cannot sign in until their email is verified. That check runs
  only after the password matches, so it reveals nothing to a guesser.
- Forgot-password succeeds silently for unknown emails.
- Input is validated before any store access.
"""

from __future__ import annotations

from datetime import timedelta

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import (
    AuthenticationError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from ..models import PrincipalClass
from . import principal_service, session_service, verification_service, mail_service
from .audit_service import log_security_event
from .mail_service import MailDeliveryError
from .password_service import (
    ADMIN_MIN_PASSWORD_LENGTH,
    CUSTOMER_MIN_PASSWORD_LENGTH,
    hash_password,
    validate_password,
    verify_password,
)
from .principal_service import PASSWORD_PROVIDER, normalize_email
from storefront.time_utils import utcnow


_timing_digest: str | None = None


def _equalize_timing(password: str) -> None:
    """Spend one key derivation when there is no digest to check."""
    global _timing_digest
    if _timing_digest is None:
        _timing_digest = hash_password("timing-equalization")
    verify_password(password or "x", _timing_digest)


def _require_email(email, code: ErrorCode = ErrorCode.MISSING_EMAIL) -> str:
    if not email or not isinstance(email, str) or not email.strip():
        raise ValidationError(code, "Email is required")
    return normalize_email(email)


def _require_token(token) -> str:
    if not token or not isinstance(token, str) or not token.strip():
        raise ValidationError(ErrorCode.MISSING_TOKEN, "Token is required")
    return token.strip()


def _validate_new_principal(email, password, name, image, min_password_length: int) -> None:
    if not email or not password or not name:
        raise ValidationError(
            ErrorCode.MISSING_REQUIRED_FIELDS,
            "Missing required fields: email, password, and name are required",
        )
    if not principal_service.is_valid_email(email):
        raise ValidationError(ErrorCode.INVALID_EMAIL, "Invalid email format")
    validate_password(password, min_password_length)
    if not isinstance(name, str) or not name.strip():
        raise ValidationError(ErrorCode.INVALID_NAME, "Name must not be blank")
    if image is not None and not isinstance(image, str):
        raise ValidationError(ErrorCode.INVALID_IMAGE, "Image must be a URL string")


def _create_with_password(principal_class, email, password, name, image, event_type):
    digest = hash_password(password)
    try:
        principal = principal_service.create_principal(principal_class, email, name, image=image)
        principal_service.link_credential(
            principal_class,
            principal.id,
            PASSWORD_PROVIDER,
            principal.email,
            digest,
        )
        log_security_event(principal_class, principal.id, event_type, success=True)
        db.session.commit()
    except IntegrityError:
        # Lost a race with a concurrent registration for the same email
        db.session.rollback()
        raise ConflictError(ErrorCode.EMAIL_EXISTS, "Account with this email already exists")
    return principal


def create_admin(email, password, name, image=None):
    """
    Create an administrator with a password credential.

    Returns the Admin row. Raises ValidationError (MISSING_REQUIRED_FIELDS,
    INVALID_EMAIL, INVALID_PASSWORD, INVALID_NAME, INVALID_IMAGE) or ConflictError
    (EMAIL_EXISTS).
    """
    _validate_new_principal(email, password, name, image, ADMIN_MIN_PASSWORD_LENGTH)
    return _create_with_password(PrincipalClass.ADMIN, email, password, name, image, "ADMIN_CREATED")


def register_customer(email, password, name, image=None):
    """
    Customer sign-up.

    Creates an unverified customer with a password credential, then issues
    and mails an email-verification token. A mail failure is logged and does
    not undo the registration; the customer can ask for a resend.
    """
    _validate_new_principal(email, password, name, image, CUSTOMER_MIN_PASSWORD_LENGTH)
    customer = _create_with_password(
        PrincipalClass.CUSTOMER, email, password, name, image, "CUSTOMER_REGISTERED"
    )

    token = verification_service.issue_token(customer.email, _verification_ttl())
    try:
        mail_service.send_verification_email(customer.email, token)
    except MailDeliveryError:
        current_app.logger.exception("Failed to send verification email after sign-up")

    return customer


def login(principal_class: PrincipalClass, email, password, ip_address=None, user_agent=None):
    """
    Authenticate by email and password and issue a session.

    Returns (session, principal). Raises ValidationError
    (MISSING_REQUIRED_FIELDS), AuthenticationError (INVALID_CREDENTIALS), or
    ForbiddenError (EMAIL_NOT_VERIFIED) for a customer with the right
    password whose email is not confirmed yet.
    """
    if not email or not password or not isinstance(email, str) or not isinstance(password, str):
        raise ValidationError(ErrorCode.MISSING_REQUIRED_FIELDS, "Email and password are required")

    found = principal_service.find_password_login(principal_class, email)

    if found is None:
        _equalize_timing(password)
        authenticated, principal = False, None
    else:
        account, principal = found
        authenticated = verify_password(password, account.password)

    if not authenticated:
        log_security_event(
            principal_class,
            principal.id if principal is not None else None,
            "LOGIN_FAILED",
            success=False,
            reason="Invalid credentials",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.session.commit()
        raise AuthenticationError(ErrorCode.INVALID_CREDENTIALS, "Invalid email or password")

    # Customers must confirm their email before the first session is issued
    if PrincipalClass(principal_class) is PrincipalClass.CUSTOMER and not principal.email_verified:
        log_security_event(
            principal_class,
            principal.id,
            "LOGIN_FAILED",
            success=False,
            reason="Email not verified",
            ip_address=ip_address,
            user_agent=user_agent,
        )
        db.session.commit()
        raise ForbiddenError(ErrorCode.EMAIL_NOT_VERIFIED, "Email not verified")

    log_security_event(
        principal_class,
        principal.id,
        "LOGIN_SUCCEEDED",
        success=True,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    session = session_service.create_session(
        principal_class,
        principal.id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    return session, principal


def logout(principal_class: PrincipalClass, token) -> None:
    """Revoke one session. Raises MISSING_TOKEN or SESSION_NOT_FOUND."""
    session_service.revoke_session(principal_class, _require_token(token))


def verify_session(principal_class: PrincipalClass, token) -> session_service.SessionContext:
    """Validate a bearer token. See session_service.validate_session for failures."""
    return session_service.validate_session(principal_class, _require_token(token))


def _write_password(principal_class: PrincipalClass, principal, digest: str) -> str:
    """
    Put digest on the principal's password credential.

    - password credential exists: update it in place
    - only external-provider credentials exist: delete the oldest one and
      insert a password credential (the account's login method changes)
    - no credentials at all: insert a password credential

    Returns a short description of what happened, for the audit trail.
    """
    credentials = principal_service.list_credentials(principal_class, principal.id)
    password_credential = next(
        (c for c in credentials if c.provider_id == PASSWORD_PROVIDER), None
    )

    if password_credential is not None:
        password_credential.account_id = principal.email
        password_credential.password = digest
        password_credential.updated_at = utcnow()
        return "Updated password credential"

    outcome = "Created password credential"
    if credentials:
        replaced = credentials[0]
        current_app.logger.warning(
            "Replacing %s credential with password credential for %s %s",
            replaced.provider_id,
            PrincipalClass(principal_class).value,
            principal.id,
        )
        db.session.delete(replaced)
        db.session.flush()
        outcome = f"Replaced {replaced.provider_id} credential with password credential"

    principal_service.link_credential(
        principal_class, principal.id, PASSWORD_PROVIDER, principal.email, digest
    )
    return outcome


def set_password(principal_id, password, principal_class: PrincipalClass = PrincipalClass.CUSTOMER):
    """
    Set a principal's password directly (back-office operation).

    Raises ValidationError (MISSING_USER_ID, MISSING_PASSWORD,
    INVALID_PASSWORD) or NotFoundError (USER_NOT_FOUND).
    """
    if not principal_id:
        raise ValidationError(ErrorCode.MISSING_USER_ID, "User ID is required")
    if not password:
        raise ValidationError(ErrorCode.MISSING_PASSWORD, "Password is required")
    validate_password(password, CUSTOMER_MIN_PASSWORD_LENGTH)

    principal = principal_service.get_principal(principal_class, str(principal_id))
    if principal is None:
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, "User not found")

    outcome = _write_password(principal_class, principal, hash_password(password))
    log_security_event(principal_class, principal.id, "PASSWORD_SET", success=True, reason=outcome)
    db.session.commit()
    return principal


def _verification_ttl() -> timedelta:
    return timedelta(hours=current_app.config.get("EMAIL_VERIFICATION_TTL_HOURS", 24))


def _reset_ttl() -> timedelta:
    return timedelta(hours=current_app.config.get("PASSWORD_RESET_TTL_HOURS", 1))


def request_email_verification(email, principal_class: PrincipalClass = PrincipalClass.CUSTOMER) -> None:
    """
    Issue and mail a fresh email-verification token.

    Any previous token for the email stops working. Raises ValidationError
    (MISSING_EMAIL, EMAIL_ALREADY_VERIFIED), NotFoundError (USER_NOT_FOUND),
    or InternalError when the mail cannot be delivered.
    """
    email = _require_email(email)

    principal = principal_service.find_by_email(principal_class, email)
    if principal is None:
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, "User not found")
    if principal.email_verified:
        raise ValidationError(ErrorCode.EMAIL_ALREADY_VERIFIED, "Email already verified")

    token = verification_service.issue_token(principal.email, _verification_ttl())
    try:
        mail_service.send_verification_email(principal.email, token)
    except MailDeliveryError:
        current_app.logger.exception("Failed to send verification email")
        raise InternalError("Failed to send verification email")


def verify_email(token, principal_class: PrincipalClass = PrincipalClass.CUSTOMER) -> None:
    """
    Consume an email-verification token and mark the principal verified.

    Raises ValidationError (MISSING_TOKEN, INVALID_TOKEN, TOKEN_EXPIRED).
    """
    token = _require_token(token)
    identifier = verification_service.consume_token(token, expected_purpose="verify")

    principal = principal_service.mark_email_verified(principal_class, identifier)
    if principal is not None:
        log_security_event(principal_class, principal.id, "EMAIL_VERIFIED", success=True)
    db.session.commit()


def request_password_reset(email, principal_class: PrincipalClass = PrincipalClass.CUSTOMER) -> None:
    """
    Issue and mail a password-reset token.

    Unknown emails are accepted without error so the endpoint cannot be used
    to discover accounts. Raises ValidationError (MISSING_EMAIL) only.
    """
    email = _require_email(email)

    principal = principal_service.find_by_email(principal_class, email)
    if principal is None:
        current_app.logger.info("Password reset requested for unknown email")
        return

    token = verification_service.issue_token(
        verification_service.reset_identifier(principal.email), _reset_ttl()
    )
    log_security_event(principal_class, principal.id, "PASSWORD_RESET_REQUESTED", success=True)
    db.session.commit()

    try:
        mail_service.send_password_reset_email(principal.email, token)
    except MailDeliveryError:
        # Same response as the unknown-email path
        current_app.logger.exception("Failed to send password reset email")


def reset_password(token, new_password, principal_class: PrincipalClass = PrincipalClass.CUSTOMER):
    """
    Consume a password-reset token and replace the principal's password.

    Raises ValidationError (MISSING_REQUIRED_FIELDS, INVALID_PASSWORD,
    INVALID_TOKEN, TOKEN_EXPIRED) or NotFoundError (USER_NOT_FOUND). The
    token is spent even when the principal no longer exists.
    """
    if not token or not new_password:
        raise ValidationError(ErrorCode.MISSING_REQUIRED_FIELDS, "Token and password are required")
    validate_password(new_password, CUSTOMER_MIN_PASSWORD_LENGTH)

    identifier = verification_service.consume_token(_require_token(token), expected_purpose="reset")
    email = verification_service.email_from_reset_identifier(identifier)

    principal = principal_service.find_by_email(principal_class, email)
    if principal is None:
        db.session.commit()
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, "User not found")

    outcome = _write_password(principal_class, principal, hash_password(new_password))
    log_security_event(principal_class, principal.id, "PASSWORD_RESET", success=True, reason=outcome)
    db.session.commit()
    return principal
