# Overview: Single-use verification tokens for email confirmation and password reset.

"""
Verification Token Service

Tokens are keyed by a purpose-qualified identifier:
- email confirmation: the normalized email
- password reset:     "reset:" + normalized email

Lifecycle: Live -> Consumed (deleted) or Expired (deleted on next lookup).

Issuing deletes any existing rows for the identifier and inserts the new one
in the same database transaction. Two concurrent issuers can still both
delete-then-insert under weaker isolation levels and leave two live tokens
for one identifier; both are unguessable and each is still consumed at most
once, so the duplicate is harmless.
"""

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..errors import ValidationError, ErrorCode
from ..models import Verification
from .token_service import generate_unique_token
from storefront.time_utils import utcnow, as_naive_utc


RESET_PREFIX = "reset:"


def reset_identifier(email: str) -> str:
    return f"{RESET_PREFIX}{email}"


def is_reset_identifier(identifier: str) -> bool:
    return identifier.startswith(RESET_PREFIX)


def email_from_reset_identifier(identifier: str) -> str:
    """Strip the "reset:" prefix. Identifiers without it are returned unchanged."""
    if is_reset_identifier(identifier):
        return identifier[len(RESET_PREFIX):]
    return identifier


def issue_token(identifier: str, ttl: timedelta) -> str:
    """
    Replace any live token for identifier with a new one and commit.

    Returns the token value (the secret sent to the user).
    """
    now = utcnow()

    db.session.query(Verification).filter(Verification.identifier == identifier).delete(
        synchronize_session=False
    )

    value = generate_unique_token(Verification.value)
    db.session.add(Verification(
        identifier=identifier,
        value=value,
        expires_at=now + ttl,
        created_at=now,
        updated_at=now,
    ))
    db.session.commit()
    return value


def find_token(value: str):
    return db.session.query(Verification).filter_by(value=value).first()


def consume_token(value: str, expected_purpose: str | None = None) -> str:
    """
    Consume a token and return its identifier.

    expected_purpose, when given, is "reset" or "verify"; a token issued for
    the other purpose is treated as unknown and left untouched.

    The row is deleted but NOT committed, so the caller can apply the
    token's effect in the same transaction and commit once.

    Raises:
        ValidationError(INVALID_TOKEN): no such token (or wrong purpose)
        ValidationError(TOKEN_EXPIRED): token expired; the row is deleted
            and committed before raising
    """
    record = find_token(value) if value else None

    if record is not None and expected_purpose is not None:
        is_reset = is_reset_identifier(record.identifier)
        if (expected_purpose == "reset") != is_reset:
            record = None

    if record is None:
        raise ValidationError(ErrorCode.INVALID_TOKEN, "Invalid or expired token")

    if utcnow() >= as_naive_utc(record.expires_at):
        db.session.delete(record)
        db.session.commit()
        raise ValidationError(ErrorCode.TOKEN_EXPIRED, "Token has expired. Please request a new one.")

    identifier = record.identifier

    # Row-level delete: of two concurrent consumers only one sees rowcount 1.
    deleted = db.session.query(Verification).filter(Verification.id == record.id).delete(
        synchronize_session="fetch"
    )
    if deleted != 1:
        raise ValidationError(ErrorCode.INVALID_TOKEN, "Invalid or expired token")
    return identifier


def cleanup_expired_tokens() -> int:
    """Delete every expired verification token. Returns count deleted."""
    deleted = db.session.query(Verification).filter(Verification.expires_at <= utcnow()).delete(
        synchronize_session=False
    )
    db.session.commit()
    return deleted
