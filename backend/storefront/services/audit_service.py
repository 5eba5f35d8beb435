# Overview: Append-only security audit trail for credential and session events.

from __future__ import annotations

from ..extensions import db
from ..models import SecurityEvent, PrincipalClass
from storefront.time_utils import utcnow


def log_security_event(
    principal_class: PrincipalClass,
    principal_id: str | None,
    event_type: str,
    success: bool,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> SecurityEvent:
    """
    Add a security event to the current database session.

    The event is committed together with the caller's unit of work, so an
    operation that rolls back leaves no audit row behind.

    event_type examples:
    - ADMIN_CREATED
    - CUSTOMER_REGISTERED
    - LOGIN_SUCCEEDED / LOGIN_FAILED
    - LOGOUT
    - SESSION_EXPIRED
    - PASSWORD_SET / PASSWORD_RESET / PASSWORD_RESET_REQUESTED
    - EMAIL_VERIFIED

    Never pass plaintext passwords or tokens in reason.
    """
    event = SecurityEvent(
        principal_class=PrincipalClass(principal_class).value,
        principal_id=principal_id,
        event_type=event_type,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )
    db.session.add(event)
    return event


def get_events(principal_id: str | None = None, event_type: str | None = None, limit: int = 100) -> list[SecurityEvent]:
    """Most recent events first, optionally filtered."""
    query = db.session.query(SecurityEvent)
    if principal_id is not None:
        query = query.filter(SecurityEvent.principal_id == principal_id)
    if event_type is not None:
        query = query.filter(SecurityEvent.event_type == event_type)
    return query.order_by(SecurityEvent.occurred_at.desc(), SecurityEvent.id.desc()).limit(limit).all()
