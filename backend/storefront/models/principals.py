from __future__ import annotations

from ..extensions import db
from ..services.token_service import generate_id
from storefront.time_utils import utcnow, to_utc_z


class Admin(db.Model):
    """
    Back-office administrator.

    Administrators are a separate principal class from customers: separate
    table, separate credentials, separate sessions. Email is stored
    normalized (lowercase, trimmed) and unique among admins.
    """
    __tablename__ = "admin"

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    name = db.Column(db.String(255), nullable=False)
    image = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "emailVerified": self.email_verified,
            "image": self.image,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "emailVerified": self.email_verified,
            "image": self.image,
        }


class AdminAccount(db.Model):
    """
    Administrator credential record.

    provider_id is "password" for password logins; account_id then holds the
    normalized email. password stores the "salt:hash" digest.
    """
    __tablename__ = "admin_account"
    __table_args__ = (
        db.Index("ix_admin_account_provider_account", "provider_id", "account_id"),
    )

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    account_id = db.Column(db.String(255), nullable=False)
    provider_id = db.Column(db.String(64), nullable=False, default="password")
    principal_id = db.Column("admin_id", db.String(32), db.ForeignKey("admin.id"), nullable=False, index=True)
    password = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    principal = db.relationship("Admin", backref=db.backref("accounts", lazy=True))


class Customer(db.Model):
    """
    Storefront customer.

    Customers register themselves (password or external identity provider)
    and must confirm their email through a verification token.
    """
    __tablename__ = "customer"

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    email_verified = db.Column(db.Boolean, nullable=False, default=False)
    name = db.Column(db.String(255), nullable=False)
    image = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "emailVerified": self.email_verified,
            "image": self.image,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "emailVerified": self.email_verified,
            "image": self.image,
        }


class CustomerAccount(db.Model):
    """
    Customer credential record, one row per provider.

    External identity providers (e.g. "google") leave password empty and keep
    their opaque provider tokens here.
    """
    __tablename__ = "customer_account"
    __table_args__ = (
        db.Index("ix_customer_account_provider_account", "provider_id", "account_id"),
    )

    id = db.Column(db.String(32), primary_key=True, default=generate_id)
    account_id = db.Column(db.String(255), nullable=False)
    provider_id = db.Column(db.String(64), nullable=False)
    principal_id = db.Column("customer_id", db.String(32), db.ForeignKey("customer.id"), nullable=False, index=True)
    password = db.Column(db.String(255), nullable=True)

    # Opaque external-provider material
    access_token = db.Column(db.Text, nullable=True)
    refresh_token = db.Column(db.Text, nullable=True)
    id_token = db.Column(db.Text, nullable=True)
    access_token_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refresh_token_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    scope = db.Column(db.String(512), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    principal = db.relationship("Customer", backref=db.backref("accounts", lazy=True))
