from __future__ import annotations

from ..extensions import db
from ..services.token_service import generate_id
from storefront.time_utils import utcnow


class Verification(db.Model):
    """
    Single-use verification token.

    identifier is the raw email for email confirmation and "reset:<email>"
    for password reset. Issuing a new token for an identifier deletes the
    previous one; a consumed or expired token is deleted.
    """
    __tablename__ = "verification"

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    identifier = db.Column(db.String(320), nullable=False, index=True)
    value = db.Column(db.String(128), nullable=False, unique=True, index=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
