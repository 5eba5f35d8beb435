# Overview: Storage hygiene for expired sessions, expired verification tokens, and old audit rows.

from __future__ import annotations

from datetime import timedelta

from ..extensions import db
from ..models import SecurityEvent, PrincipalClass
from . import session_service, verification_service
from storefront.time_utils import utcnow


def cleanup_expired() -> dict:
    """
    Delete expired sessions of both principal classes and expired
    verification tokens.

    Expired rows are already dead to every reader, so this only reclaims
    storage.
    """
    return {
        "admin_sessions": session_service.cleanup_expired_sessions(PrincipalClass.ADMIN),
        "customer_sessions": session_service.cleanup_expired_sessions(PrincipalClass.CUSTOMER),
        "verification_tokens": verification_service.cleanup_expired_tokens(),
    }


def cleanup_security_events(*, retention_days: int = 90) -> int:
    """
    Delete security events older than retention_days.
    """
    cutoff = utcnow() - timedelta(days=retention_days)
    deleted = db.session.query(SecurityEvent).filter(
        SecurityEvent.occurred_at < cutoff
    ).delete()
    db.session.commit()
    return deleted
