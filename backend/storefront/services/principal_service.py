# Overview: Principal and credential store for administrators and customers.

"""
Principal & credential store.

Both principal classes share this code through models_for(). Emails are
normalized (trimmed, lowercased) on every read and write path so stored
values always compare equal to normalized lookups.

Credential rules:
- provider_id "password" marks a password credential; its account_id is the
  normalized email and password holds the "salt:hash" digest.
- At most one password credential per principal. link_credential refuses to
  create a second one; callers that want to change a password must update
  the existing row (see auth_service).
"""

from __future__ import annotations

import re

from ..extensions import db
from ..errors import ConflictError, ErrorCode, ValidationError
from ..models import PrincipalClass, models_for
from .verification_service import is_reset_identifier
from storefront.time_utils import utcnow


PASSWORD_PROVIDER = "password"

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


class DuplicateCredentialError(ValueError):
    """A second password credential was requested for the same principal."""


def normalize_email(email: str) -> str:
    return email.strip().lower()


def is_valid_email(email) -> bool:
    """
    Syntactic email check.

    Addresses starting with the reset-token prefix are refused: verification
    token identifiers are the bare email, and such an address would read as a
    reset identifier for another account.
    """
    if not isinstance(email, str) or not EMAIL_PATTERN.match(email.strip()):
        return False
    return not is_reset_identifier(normalize_email(email))


def find_by_email(principal_class: PrincipalClass, email: str):
    """Principal of the given class with this email, or None."""
    Principal = models_for(principal_class).principal
    return db.session.query(Principal).filter_by(email=normalize_email(email)).first()


def get_principal(principal_class: PrincipalClass, principal_id: str):
    Principal = models_for(principal_class).principal
    return db.session.get(Principal, principal_id)


def create_principal(
    principal_class: PrincipalClass,
    email: str,
    name: str,
    image: str | None = None,
    email_verified: bool = False,
):
    """
    Create a principal. Does not commit.

    Raises ValidationError(INVALID_EMAIL) for an address carrying the reset
    prefix, and ConflictError(EMAIL_EXISTS) if a principal of this class
    already uses the email.
    """
    Principal = models_for(principal_class).principal
    normalized = normalize_email(email)

    if is_reset_identifier(normalized):
        raise ValidationError(ErrorCode.INVALID_EMAIL, "Invalid email format")

    if find_by_email(principal_class, normalized) is not None:
        label = "Admin" if PrincipalClass(principal_class) is PrincipalClass.ADMIN else "User"
        raise ConflictError(ErrorCode.EMAIL_EXISTS, f"{label} with this email already exists")

    now = utcnow()
    principal = Principal(
        email=normalized,
        name=name.strip(),
        image=image or None,
        email_verified=email_verified,
        created_at=now,
        updated_at=now,
    )
    db.session.add(principal)
    db.session.flush()
    return principal


def list_credentials(principal_class: PrincipalClass, principal_id: str) -> list:
    """All credential rows for a principal, oldest first."""
    Account = models_for(principal_class).account
    return (
        db.session.query(Account)
        .filter(Account.principal_id == principal_id)
        .order_by(Account.created_at.asc(), Account.id.asc())
        .all()
    )


def get_password_credential(principal_class: PrincipalClass, principal_id: str):
    Account = models_for(principal_class).account
    return (
        db.session.query(Account)
        .filter(Account.principal_id == principal_id, Account.provider_id == PASSWORD_PROVIDER)
        .first()
    )


def link_credential(
    principal_class: PrincipalClass,
    principal_id: str,
    provider: str,
    account_identifier: str,
    digest: str | None = None,
):
    """
    Attach a credential to a principal. Does not commit.

    For the password provider the account identifier is normalized like an
    email. Raises DuplicateCredentialError if the principal already has a
    password credential.
    """
    Account = models_for(principal_class).account

    if provider == PASSWORD_PROVIDER:
        if get_password_credential(principal_class, principal_id) is not None:
            raise DuplicateCredentialError("Principal already has a password credential")
        account_identifier = normalize_email(account_identifier)

    now = utcnow()
    account = Account(
        account_id=account_identifier,
        provider_id=provider,
        principal_id=principal_id,
        password=digest,
        created_at=now,
        updated_at=now,
    )
    db.session.add(account)
    db.session.flush()
    return account


def find_password_login(principal_class: PrincipalClass, email: str):
    """
    Password credential joined to its principal, looked up by normalized email.

    Returns (account, principal) or None.
    """
    models = models_for(principal_class)
    Principal, Account = models.principal, models.account

    row = (
        db.session.query(Account, Principal)
        .join(Principal, Account.principal_id == Principal.id)
        .filter(
            Account.account_id == normalize_email(email),
            Account.provider_id == PASSWORD_PROVIDER,
        )
        .first()
    )
    if row is None:
        return None
    return row[0], row[1]


def mark_email_verified(principal_class: PrincipalClass, email: str):
    """
    Set email_verified on the principal with this email. Does not commit.

    The flag only moves false -> true. Returns the principal, or None if no
    principal has the email.
    """
    principal = find_by_email(principal_class, email)
    if principal is None:
        return None
    if not principal.email_verified:
        principal.email_verified = True
        principal.updated_at = utcnow()
    return principal
