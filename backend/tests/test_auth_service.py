"""
Orchestrator flows: sign-up, login/logout, password set and reset, email
verification, and the audit trail they leave.
"""

from datetime import timedelta

import pytest

from storefront.extensions import db
from storefront.errors import (
    AuthenticationError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    InternalError,
    NotFoundError,
    ValidationError,
)
from storefront.models import AdminAccount, CustomerAccount, CustomerSession, PrincipalClass
from storefront.services import audit_service, auth_service, principal_service, verification_service
from storefront.services.mail_service import MailDeliveryError
from storefront.services.password_service import hash_password, verify_password
from storefront.services.principal_service import DuplicateCredentialError

from tests.conftest import (
    ADMIN_EMAIL,
    ADMIN_PASSWORD,
    CUSTOMER_EMAIL,
    CUSTOMER_PASSWORD,
    expire,
    token_for,
)


def events(event_type):
    return audit_service.get_events(event_type=event_type)


def external_only_customer(email="oauth@example.com"):
    customer = principal_service.create_principal(
        PrincipalClass.CUSTOMER, email, "Olive OAuth", email_verified=True
    )
    principal_service.link_credential(PrincipalClass.CUSTOMER, customer.id, "google", "google-sub-1")
    db.session.commit()
    return customer


class TestCreateAdmin:
    def test_creates_principal_and_password_credential(self, admin):
        assert admin.email == ADMIN_EMAIL
        assert admin.email_verified is False

        account = db.session.query(AdminAccount).filter_by(principal_id=admin.id).one()
        assert account.provider_id == "password"
        assert account.account_id == ADMIN_EMAIL
        assert verify_password(ADMIN_PASSWORD, account.password)
        assert len(events("ADMIN_CREATED")) == 1

    def test_email_is_normalized(self, app):
        admin = auth_service.create_admin("  Boss@Example.COM ", "longenough", "Boss")
        assert admin.email == "boss@example.com"

    def test_duplicate_email_conflicts(self, admin):
        with pytest.raises(ConflictError) as exc:
            auth_service.create_admin(ADMIN_EMAIL.upper(), "anotherpass", "Other")
        assert exc.value.code == ErrorCode.EMAIL_EXISTS
        assert exc.value.status_code == 400

    @pytest.mark.parametrize("email,password,name,code", [
        ("", "longenough", "A", ErrorCode.MISSING_REQUIRED_FIELDS),
        ("a@x.com", "", "A", ErrorCode.MISSING_REQUIRED_FIELDS),
        ("a@x.com", "longenough", "", ErrorCode.MISSING_REQUIRED_FIELDS),
        ("not-an-email", "longenough", "A", ErrorCode.INVALID_EMAIL),
        ("a@x.com", "short", "A", ErrorCode.INVALID_PASSWORD),
        ("a@x.com", "longenough", "   ", ErrorCode.INVALID_NAME),
    ])
    def test_rejects_bad_input_before_writing(self, app, email, password, name, code):
        with pytest.raises(ValidationError) as exc:
            auth_service.create_admin(email, password, name)
        assert exc.value.code == code
        assert db.session.query(AdminAccount).count() == 0

    def test_admin_minimum_is_eight(self, app):
        with pytest.raises(ValidationError):
            auth_service.create_admin("a@x.com", "1234567", "A")
        assert auth_service.create_admin("a@x.com", "12345678", "A").id


class TestRegisterCustomer:
    def test_sends_verification_mail(self, customer, outbox):
        assert customer.email_verified is False
        assert len(outbox) == 1
        message = outbox[0]
        assert message["to"] == CUSTOMER_EMAIL
        record = token_for(CUSTOMER_EMAIL)
        assert f"http://shop.test/verify-email?token={record.value}" in message["html"]

    def test_mail_failure_keeps_registration(self, app, monkeypatch):
        def broken(email, token):
            raise MailDeliveryError("smtp down")

        monkeypatch.setattr(auth_service.mail_service, "send_verification_email", broken)

        customer = auth_service.register_customer("new@example.com", "hunter22", "New")
        assert principal_service.get_principal(PrincipalClass.CUSTOMER, customer.id) is not None

    def test_customer_and_admin_emails_are_separate(self, admin, outbox):
        customer = auth_service.register_customer(ADMIN_EMAIL, "hunter22", "Same Email")
        assert customer.id != admin.id

    def test_reset_prefixed_email_is_refused(self, app, outbox):
        auth_service.register_customer("bob@x.com", "hunter22", "Bob")

        with pytest.raises(ValidationError) as exc:
            auth_service.register_customer("reset:bob@x.com", "hunter22", "Mallory")
        assert exc.value.code == ErrorCode.INVALID_EMAIL
        assert token_for("reset:bob@x.com") is None
        assert len(outbox) == 1

    def test_reset_prefixed_email_cannot_be_stored_directly(self, app):
        with pytest.raises(ValidationError) as exc:
            principal_service.create_principal(PrincipalClass.CUSTOMER, " RESET:bob@x.com", "Mallory")
        assert exc.value.code == ErrorCode.INVALID_EMAIL

    def test_verification_token_never_resets_another_account(self, app, outbox):
        auth_service.register_customer("bob@x.com", "hunter22", "Bob")
        verify_token = token_for("bob@x.com").value

        with pytest.raises(ValidationError) as exc:
            auth_service.reset_password(verify_token, "attacker1")
        assert exc.value.code == ErrorCode.INVALID_TOKEN

        auth_service.verify_email(verify_token)
        session, _ = auth_service.login(PrincipalClass.CUSTOMER, "bob@x.com", "hunter22")
        assert session.token

    def test_non_string_image_is_refused(self, app, outbox):
        with pytest.raises(ValidationError) as exc:
            auth_service.register_customer("pic@example.com", "hunter22", "Pic", image={})
        assert exc.value.code == ErrorCode.INVALID_IMAGE
        assert principal_service.find_by_email(PrincipalClass.CUSTOMER, "pic@example.com") is None

    def test_second_password_credential_is_refused(self, customer):
        with pytest.raises(DuplicateCredentialError):
            principal_service.link_credential(
                PrincipalClass.CUSTOMER, customer.id, "password", customer.email, hash_password("another1")
            )
        db.session.rollback()

        assert db.session.query(CustomerAccount).filter_by(principal_id=customer.id).count() == 1


class TestLogin:
    def test_login_issues_session(self, admin):
        session, principal = auth_service.login(
            PrincipalClass.ADMIN, ADMIN_EMAIL, ADMIN_PASSWORD, ip_address="198.51.100.1"
        )

        assert principal.id == admin.id
        context = auth_service.verify_session(PrincipalClass.ADMIN, session.token)
        assert context.principal.email == ADMIN_EMAIL
        assert events("LOGIN_SUCCEEDED")[0].ip_address == "198.51.100.1"

    def test_login_email_is_case_insensitive(self, admin):
        session, _ = auth_service.login(PrincipalClass.ADMIN, " A@X.COM ", ADMIN_PASSWORD)
        assert session.token

    def test_wrong_password_and_unknown_email_look_the_same(self, admin):
        with pytest.raises(AuthenticationError) as wrong:
            auth_service.login(PrincipalClass.ADMIN, ADMIN_EMAIL, "not-the-password")
        with pytest.raises(AuthenticationError) as unknown:
            auth_service.login(PrincipalClass.ADMIN, "nobody@x.com", ADMIN_PASSWORD)

        assert wrong.value.code == unknown.value.code == ErrorCode.INVALID_CREDENTIALS
        assert wrong.value.message == unknown.value.message == "Invalid email or password"
        assert wrong.value.status_code == 401

        failures = events("LOGIN_FAILED")
        assert len(failures) == 2
        assert {f.principal_id for f in failures} == {admin.id, None}

    def test_missing_fields(self, app):
        with pytest.raises(ValidationError) as exc:
            auth_service.login(PrincipalClass.ADMIN, "", "x")
        assert exc.value.code == ErrorCode.MISSING_REQUIRED_FIELDS

    def test_external_only_account_cannot_password_login(self, app):
        external_only_customer()
        with pytest.raises(AuthenticationError):
            auth_service.login(PrincipalClass.CUSTOMER, "oauth@example.com", "anything")

    def test_admin_credentials_do_not_open_customer_sessions(self, admin):
        with pytest.raises(AuthenticationError):
            auth_service.login(PrincipalClass.CUSTOMER, ADMIN_EMAIL, ADMIN_PASSWORD)

    def test_unverified_customer_cannot_sign_in(self, customer):
        with pytest.raises(ForbiddenError) as exc:
            auth_service.login(PrincipalClass.CUSTOMER, CUSTOMER_EMAIL, CUSTOMER_PASSWORD)

        assert exc.value.code == ErrorCode.EMAIL_NOT_VERIFIED
        assert exc.value.status_code == 403
        assert db.session.query(CustomerSession).count() == 0
        failure = events("LOGIN_FAILED")[0]
        assert failure.principal_id == customer.id
        assert failure.reason == "Email not verified"

    def test_customer_signs_in_once_verified(self, verified_customer):
        session, principal = auth_service.login(PrincipalClass.CUSTOMER, CUSTOMER_EMAIL, CUSTOMER_PASSWORD)
        assert principal.id == verified_customer.id
        assert session.token

    def test_admins_need_no_email_verification(self, admin):
        assert admin.email_verified is False
        session, _ = auth_service.login(PrincipalClass.ADMIN, ADMIN_EMAIL, ADMIN_PASSWORD)
        assert session.token


class TestLogout:
    def test_logout_then_verify_fails(self, admin_token):
        auth_service.logout(PrincipalClass.ADMIN, admin_token)

        with pytest.raises(AuthenticationError) as exc:
            auth_service.verify_session(PrincipalClass.ADMIN, admin_token)
        assert exc.value.code == ErrorCode.INVALID_SESSION

    def test_logout_unknown_token(self, app):
        with pytest.raises(NotFoundError) as exc:
            auth_service.logout(PrincipalClass.ADMIN, "a" * 64)
        assert exc.value.code == ErrorCode.SESSION_NOT_FOUND

    def test_missing_token(self, app):
        for token in (None, "", "   "):
            with pytest.raises(ValidationError) as exc:
                auth_service.logout(PrincipalClass.ADMIN, token)
            assert exc.value.code == ErrorCode.MISSING_TOKEN

    def test_other_sessions_survive(self, admin, admin_token):
        other, _ = auth_service.login(PrincipalClass.ADMIN, ADMIN_EMAIL, ADMIN_PASSWORD)
        auth_service.logout(PrincipalClass.ADMIN, admin_token)

        assert auth_service.verify_session(PrincipalClass.ADMIN, other.token).principal.id == admin.id


class TestSetPassword:
    def test_updates_existing_password_credential(self, customer):
        auth_service.set_password(customer.id, "brandnew")

        accounts = db.session.query(CustomerAccount).filter_by(principal_id=customer.id).all()
        assert len(accounts) == 1
        assert verify_password("brandnew", accounts[0].password)
        assert not verify_password(CUSTOMER_PASSWORD, accounts[0].password)
        assert events("PASSWORD_SET")[0].reason == "Updated password credential"

    def test_creates_credential_when_none_exists(self, app):
        bare = principal_service.create_principal(
            PrincipalClass.CUSTOMER, "bare@example.com", "Bare", email_verified=True
        )
        db.session.commit()

        auth_service.set_password(bare.id, "firstpw")

        session, _ = auth_service.login(PrincipalClass.CUSTOMER, "bare@example.com", "firstpw")
        assert session.token

    def test_converts_external_only_account(self, app):
        customer = external_only_customer()

        auth_service.set_password(customer.id, "converted")

        accounts = db.session.query(CustomerAccount).filter_by(principal_id=customer.id).all()
        assert [a.provider_id for a in accounts] == ["password"]
        assert events("PASSWORD_SET")[0].reason == "Replaced google credential with password credential"
        session, _ = auth_service.login(PrincipalClass.CUSTOMER, "oauth@example.com", "converted")
        assert session.token

    def test_validation_order(self, customer):
        with pytest.raises(ValidationError) as exc:
            auth_service.set_password("", "whatever")
        assert exc.value.code == ErrorCode.MISSING_USER_ID

        with pytest.raises(ValidationError) as exc:
            auth_service.set_password(customer.id, "")
        assert exc.value.code == ErrorCode.MISSING_PASSWORD

        with pytest.raises(ValidationError) as exc:
            auth_service.set_password(customer.id, "12345")
        assert exc.value.code == ErrorCode.INVALID_PASSWORD

    def test_unknown_principal(self, app):
        with pytest.raises(NotFoundError) as exc:
            auth_service.set_password("0" * 32, "whatever")
        assert exc.value.code == ErrorCode.USER_NOT_FOUND


class TestEmailVerification:
    def test_verify_email_marks_customer_verified(self, customer):
        token = token_for(CUSTOMER_EMAIL).value

        auth_service.verify_email(token)

        assert principal_service.find_by_email(PrincipalClass.CUSTOMER, CUSTOMER_EMAIL).email_verified
        assert token_for(CUSTOMER_EMAIL) is None
        assert len(events("EMAIL_VERIFIED")) == 1

    def test_token_works_once(self, customer):
        token = token_for(CUSTOMER_EMAIL).value
        auth_service.verify_email(token)

        with pytest.raises(ValidationError) as exc:
            auth_service.verify_email(token)
        assert exc.value.code == ErrorCode.INVALID_TOKEN

    def test_expired_token(self, customer):
        record = token_for(CUSTOMER_EMAIL)
        token = record.value
        expire(record)

        with pytest.raises(ValidationError) as exc:
            auth_service.verify_email(token)
        assert exc.value.code == ErrorCode.TOKEN_EXPIRED
        assert not principal_service.find_by_email(PrincipalClass.CUSTOMER, CUSTOMER_EMAIL).email_verified

    def test_resend_invalidates_previous_token(self, customer, outbox):
        first = token_for(CUSTOMER_EMAIL).value

        auth_service.request_email_verification(CUSTOMER_EMAIL)

        assert len(outbox) == 2
        with pytest.raises(ValidationError):
            auth_service.verify_email(first)
        auth_service.verify_email(token_for(CUSTOMER_EMAIL).value)

    def test_request_for_unknown_email(self, app, outbox):
        with pytest.raises(NotFoundError) as exc:
            auth_service.request_email_verification("ghost@example.com")
        assert exc.value.code == ErrorCode.USER_NOT_FOUND
        assert outbox == []

    def test_request_when_already_verified(self, customer):
        auth_service.verify_email(token_for(CUSTOMER_EMAIL).value)

        with pytest.raises(ValidationError) as exc:
            auth_service.request_email_verification(CUSTOMER_EMAIL)
        assert exc.value.code == ErrorCode.EMAIL_ALREADY_VERIFIED

    def test_request_without_email(self, app):
        with pytest.raises(ValidationError) as exc:
            auth_service.request_email_verification("  ")
        assert exc.value.code == ErrorCode.MISSING_EMAIL

    def test_mail_failure_is_internal_error(self, customer, monkeypatch):
        def broken(email, token):
            raise MailDeliveryError("smtp down")

        monkeypatch.setattr(auth_service.mail_service, "send_verification_email", broken)

        with pytest.raises(InternalError) as exc:
            auth_service.request_email_verification(CUSTOMER_EMAIL)
        assert exc.value.status_code == 500


class TestPasswordReset:
    def reset_token(self):
        return token_for(verification_service.reset_identifier(CUSTOMER_EMAIL)).value

    def test_full_reset_flow(self, verified_customer, outbox):
        old_session, _ = auth_service.login(PrincipalClass.CUSTOMER, CUSTOMER_EMAIL, CUSTOMER_PASSWORD)

        auth_service.request_password_reset(CUSTOMER_EMAIL)
        token = self.reset_token()
        assert f"http://shop.test/reset-password?token={token}" in outbox[-1]["html"]

        auth_service.reset_password(token, "newpass1")

        with pytest.raises(AuthenticationError):
            auth_service.login(PrincipalClass.CUSTOMER, CUSTOMER_EMAIL, CUSTOMER_PASSWORD)
        session, _ = auth_service.login(PrincipalClass.CUSTOMER, CUSTOMER_EMAIL, "newpass1")
        assert session.token
        # Existing sessions are not revoked by a reset
        assert auth_service.verify_session(PrincipalClass.CUSTOMER, old_session.token)
        assert events("PASSWORD_RESET")[0].reason == "Updated password credential"

    def test_token_is_single_use(self, customer):
        auth_service.request_password_reset(CUSTOMER_EMAIL)
        token = self.reset_token()
        auth_service.reset_password(token, "newpass1")

        with pytest.raises(ValidationError) as exc:
            auth_service.reset_password(token, "newpass2")
        assert exc.value.code == ErrorCode.INVALID_TOKEN

    def test_expired_token(self, customer):
        auth_service.request_password_reset(CUSTOMER_EMAIL)
        record = token_for(verification_service.reset_identifier(CUSTOMER_EMAIL))
        token = record.value
        expire(record)

        with pytest.raises(ValidationError) as exc:
            auth_service.reset_password(token, "newpass1")
        assert exc.value.code == ErrorCode.TOKEN_EXPIRED

    def test_short_password_keeps_token(self, customer):
        auth_service.request_password_reset(CUSTOMER_EMAIL)
        token = self.reset_token()

        with pytest.raises(ValidationError) as exc:
            auth_service.reset_password(token, "12345")
        assert exc.value.code == ErrorCode.INVALID_PASSWORD
        auth_service.reset_password(token, "123456")

    def test_missing_fields(self, app):
        with pytest.raises(ValidationError) as exc:
            auth_service.reset_password("", "newpass1")
        assert exc.value.code == ErrorCode.MISSING_REQUIRED_FIELDS

    def test_verification_token_is_not_a_reset_token(self, customer):
        with pytest.raises(ValidationError) as exc:
            auth_service.reset_password(token_for(CUSTOMER_EMAIL).value, "newpass1")
        assert exc.value.code == ErrorCode.INVALID_TOKEN

    def test_unknown_email_is_silent(self, app, outbox):
        auth_service.request_password_reset("ghost@example.com")

        assert outbox == []
        assert token_for("reset:ghost@example.com") is None

    def test_reset_for_deleted_customer_spends_token(self, app):
        value = verification_service.issue_token("reset:gone@example.com", timedelta(hours=1))

        with pytest.raises(NotFoundError) as exc:
            auth_service.reset_password(value, "newpass1")
        assert exc.value.code == ErrorCode.USER_NOT_FOUND
        assert verification_service.find_token(value) is None

    def test_reset_converts_external_only_account(self, app, outbox):
        external_only_customer()
        auth_service.request_password_reset("oauth@example.com")
        token = token_for("reset:oauth@example.com").value

        auth_service.reset_password(token, "newpass1")

        session, _ = auth_service.login(PrincipalClass.CUSTOMER, "oauth@example.com", "newpass1")
        assert session.token
