# Overview: Service-layer operations for bearer sessions; issue, verify, revoke, and reap.

"""
Session Token Management Service

Sessions move through three states:
- Active:  now < expires_at
- Expired: now >= expires_at (row still present)
- Deleted: row absent

Expiry is detected lazily. validate_session re-checks expires_at on every
lookup and deletes an expired row as soon as it is observed; there is no
background sweep required for correctness (cleanup_expired_sessions exists
for storage hygiene only).

A session's lifetime is fixed when it is issued. There is no renewal, and
revoking one session never touches the principal's other sessions.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from ..extensions import db
from ..errors import AuthenticationError, NotFoundError, ErrorCode
from ..models import PrincipalClass, models_for
from .token_service import generate_unique_token
from .audit_service import log_security_event
from storefront.time_utils import utcnow, as_naive_utc


@dataclass
class SessionContext:
    """
    Result of a successful validate_session.

    principal is the Admin or Customer row; session is the matching session
    row (its token is the caller's bearer secret).
    """
    principal_class: PrincipalClass
    principal: object
    session: object

    def to_dict(self, principal_key: str = "principal") -> dict:
        """Public principal fields under principal_key, plus the session."""
        return {
            principal_key: self.principal.to_public_dict(),
            "session": self.session.to_dict(),
        }


def session_ttl(principal_class: PrincipalClass) -> timedelta:
    """Configured lifetime for new sessions of a principal class."""
    if PrincipalClass(principal_class) is PrincipalClass.ADMIN:
        hours = current_app.config.get("ADMIN_SESSION_TTL_HOURS", 168)
    else:
        hours = current_app.config.get("CUSTOMER_SESSION_TTL_HOURS", 168)
    return timedelta(hours=hours)


def is_expired(session, now=None) -> bool:
    now = now or utcnow()
    return now >= as_naive_utc(session.expires_at)


def create_session(
    principal_class: PrincipalClass,
    principal_id: str,
    ttl: timedelta | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
):
    """
    Issue a new Active session for a principal and commit it.

    Returns the session row; session.token is the plaintext bearer value.
    Existing sessions of the principal are left untouched.
    """
    Session = models_for(principal_class).session
    ttl = ttl if ttl is not None else session_ttl(principal_class)

    now = utcnow()
    session = Session(
        token=generate_unique_token(Session.token),
        principal_id=principal_id,
        expires_at=now + ttl,
        ip_address=ip_address,
        user_agent=user_agent,
        created_at=now,
        updated_at=now,
    )

    db.session.add(session)
    db.session.commit()
    return session


def find_session(principal_class: PrincipalClass, token: str):
    """Raw lookup by token. Does not check expiry."""
    Session = models_for(principal_class).session
    return db.session.query(Session).filter_by(token=token).first()


def validate_session(principal_class: PrincipalClass, token: str) -> SessionContext:
    """
    Resolve a bearer token to its principal.

    Raises:
        AuthenticationError(INVALID_SESSION): no session has this token
        AuthenticationError(SESSION_EXPIRED): session expired; the row is
            deleted before raising, so the next call sees INVALID_SESSION
        NotFoundError(ADMIN_NOT_FOUND / USER_NOT_FOUND): the session points
            at a principal that no longer exists
    """
    session = find_session(principal_class, token)

    if session is None:
        raise AuthenticationError(ErrorCode.INVALID_SESSION, "Invalid session token")

    if is_expired(session):
        log_security_event(
            principal_class,
            session.principal_id,
            "SESSION_EXPIRED",
            success=False,
            reason="Session observed after expiry",
        )
        db.session.delete(session)
        db.session.commit()
        raise AuthenticationError(ErrorCode.SESSION_EXPIRED, "Session expired")

    principal = db.session.get(models_for(principal_class).principal, session.principal_id)
    if principal is None:
        if PrincipalClass(principal_class) is PrincipalClass.ADMIN:
            raise NotFoundError(ErrorCode.ADMIN_NOT_FOUND, "Admin not found")
        raise NotFoundError(ErrorCode.USER_NOT_FOUND, "User not found")

    return SessionContext(principal_class=PrincipalClass(principal_class), principal=principal, session=session)


def revoke_session(principal_class: PrincipalClass, token: str) -> None:
    """
    Delete the session identified by token.

    Raises NotFoundError(SESSION_NOT_FOUND) if it is already gone.
    """
    session = find_session(principal_class, token)
    if session is None:
        raise NotFoundError(ErrorCode.SESSION_NOT_FOUND, "Session not found")

    log_security_event(principal_class, session.principal_id, "LOGOUT", success=True)
    db.session.delete(session)
    db.session.commit()


def list_active_sessions(principal_class: PrincipalClass, principal_id: str) -> list:
    """Sessions of a principal that have not expired yet."""
    Session = models_for(principal_class).session
    return (
        db.session.query(Session)
        .filter(Session.principal_id == principal_id, Session.expires_at > utcnow())
        .order_by(Session.created_at.desc())
        .all()
    )


def cleanup_expired_sessions(principal_class: PrincipalClass) -> int:
    """
    Delete every expired session of a principal class.

    Returns count of sessions deleted.
    Run periodically for storage hygiene; correctness does not depend on it.
    """
    Session = models_for(principal_class).session
    deleted = db.session.query(Session).filter(Session.expires_at <= utcnow()).delete(
        synchronize_session=False
    )
    db.session.commit()
    return deleted
