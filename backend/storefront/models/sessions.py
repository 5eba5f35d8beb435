from __future__ import annotations

from ..extensions import db
from ..services.token_service import generate_id
from storefront.time_utils import utcnow, to_utc_z


class AdminSession(db.Model):
    """
    Administrator bearer session.

    The token is the opaque bearer value handed to the client. A row whose
    expires_at has passed is dead even before it is deleted; readers must
    check expiry on every lookup.
    """
    __tablename__ = "admin_session"

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    token = db.Column(db.String(128), nullable=False, unique=True, index=True)
    principal_id = db.Column("admin_id", db.String(32), db.ForeignKey("admin.id"), nullable=False, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    # Client information
    ip_address = db.Column(db.String(45), nullable=True)  # IPv6 max length
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "token": self.token,
            "expiresAt": to_utc_z(self.expires_at),
        }


class CustomerSession(db.Model):
    """Customer bearer session; same lifecycle as AdminSession."""
    __tablename__ = "customer_session"

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    token = db.Column(db.String(128), nullable=False, unique=True, index=True)
    principal_id = db.Column("customer_id", db.String(32), db.ForeignKey("customer.id"), nullable=False, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "token": self.token,
            "expiresAt": to_utc_z(self.expires_at),
        }
