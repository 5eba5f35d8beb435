"""
Pytest fixtures for storefront backend tests.

Provides an in-memory database per test, a Flask test client, principal
factories, and a captured mail outbox.
"""

from datetime import timedelta

import pytest
from storefront import create_app
from storefront.extensions import db
from storefront.models import PrincipalClass, Verification
from storefront.services import auth_service, mail_service
from storefront.time_utils import utcnow


ADMIN_EMAIL = "a@x.com"
ADMIN_PASSWORD = "secret12"
CUSTOMER_EMAIL = "shopper@example.com"
CUSTOMER_PASSWORD = "hunter22"


@pytest.fixture(scope='function')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'MAIL_SUPPRESS_SEND': True,
        'APP_BASE_URL': 'http://shop.test',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def outbox(monkeypatch):
    """Capture outgoing mail instead of delivering it."""
    sent = []

    def fake_send_email(to, subject, html, text):
        sent.append({"to": to, "subject": subject, "html": html, "text": text})

    monkeypatch.setattr(mail_service, "send_email", fake_send_email)
    return sent


@pytest.fixture(scope='function')
def admin(app):
    """Administrator a@x.com with a password credential."""
    return auth_service.create_admin(email=ADMIN_EMAIL, password=ADMIN_PASSWORD, name="Alice Admin")


@pytest.fixture(scope='function')
def customer(app, outbox):
    """Unverified customer registered through sign-up."""
    return auth_service.register_customer(
        email=CUSTOMER_EMAIL, password=CUSTOMER_PASSWORD, name="Sam Shopper"
    )


@pytest.fixture(scope='function')
def verified_customer(customer):
    """Customer who has followed the sign-up verification link."""
    auth_service.verify_email(token_for(customer.email).value)
    return customer


@pytest.fixture(scope='function')
def admin_token(admin):
    session, _ = auth_service.login(PrincipalClass.ADMIN, ADMIN_EMAIL, ADMIN_PASSWORD)
    return session.token


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def expire(row) -> None:
    """Move a session or verification row's expiry into the past."""
    row.expires_at = utcnow() - timedelta(seconds=1)
    db.session.commit()


def token_for(identifier: str) -> Verification | None:
    return db.session.query(Verification).filter_by(identifier=identifier).first()
