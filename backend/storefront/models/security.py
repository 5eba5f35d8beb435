from __future__ import annotations

from ..extensions import db
from storefront.time_utils import utcnow, to_utc_z

class SecurityEvent(db.Model):
    """
    Security event audit log.

    Covers logins, logouts, password changes, and email verification for
    both principal classes. principal_id is nullable for events without a
    resolved principal (e.g. a failed login for an unknown email).

    IMMUTABLE: Never update. Rows are only removed by retention cleanup.
    """
    __tablename__ = "security_events"
    __table_args__ = (
        db.Index("ix_security_events_principal_type", "principal_id", "event_type"),
        db.Index("ix_security_events_occurred", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    principal_class = db.Column(db.String(16), nullable=False)  # admin / customer
    principal_id = db.Column(db.String(32), nullable=True, index=True)

    event_type = db.Column(db.String(64), nullable=False, index=True)  # LOGIN_FAILED, LOGOUT, PASSWORD_RESET, ...
    success = db.Column(db.Boolean, nullable=False, index=True)
    reason = db.Column(db.Text, nullable=True)

    # Client context
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "principal_class": self.principal_class,
            "principal_id": self.principal_id,
            "event_type": self.event_type,
            "success": self.success,
            "reason": self.reason,
            "ip_address": self.ip_address,
            "occurred_at": to_utc_z(self.occurred_at),
        }
