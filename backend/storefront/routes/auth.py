# Overview: Flask API routes for customer authentication, email verification, and password reset.

# backend/storefront/routes/auth.py
"""
Customer authentication API routes

Sessions are returned as a bearer token and also set as an HttpOnly cookie,
so both API clients (Authorization header) and the storefront pages
(cookie) can authenticate.
"""

from flask import Blueprint, current_app, request, jsonify, g

from ..errors import AuthError
from ..models import PrincipalClass
from ..services import auth_service
from ..decorators import require_customer, bearer_token
from ..time_utils import to_utc_z
from . import json_body, client_ip, error_response, internal_error_response


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _cookie_name() -> str:
    return current_app.config.get("SESSION_COOKIE_NAME_CUSTOMER", "storefront_session")


@auth_bp.post("/sign-up")
def sign_up_route():
    """
    Register a customer with email and password.

    The account starts unverified; a verification email is sent.
    """
    try:
        data = json_body()
        customer = auth_service.register_customer(
            email=data.get("email"),
            password=data.get("password"),
            name=data.get("name"),
            image=data.get("image"),
        )
        return jsonify({"user": customer.to_dict()}), 201

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to register customer")


@auth_bp.post("/sign-in/email")
def sign_in_route():
    try:
        data = json_body()
        session, customer = auth_service.login(
            PrincipalClass.CUSTOMER,
            data.get("email"),
            data.get("password"),
            ip_address=client_ip(),
            user_agent=request.headers.get("User-Agent"),
        )
        response = jsonify({
            "token": session.token,
            "user": customer.to_public_dict(),
            "expiresAt": to_utc_z(session.expires_at),
        })
        response.set_cookie(
            _cookie_name(),
            session.token,
            expires=session.expires_at,
            httponly=True,
            secure=not current_app.debug and not current_app.testing,
            samesite="Lax",
        )
        return response, 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to sign in customer")


@auth_bp.post("/sign-out")
def sign_out_route():
    try:
        token = bearer_token() or request.cookies.get(_cookie_name()) or json_body().get("token")
        auth_service.logout(PrincipalClass.CUSTOMER, token)
        response = jsonify({"success": True})
        response.delete_cookie(_cookie_name())
        return response, 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to sign out customer")


@auth_bp.get("/get-session")
@require_customer
def get_session_route():
    return jsonify(g.session_context.to_dict("user")), 200


def _send_verification(log_message: str):
    try:
        auth_service.request_email_verification(json_body().get("email"))
        return jsonify({"message": "Verification email sent successfully"}), 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response(log_message)


@auth_bp.post("/send-verification")
def send_verification_route():
    """
    Send an email-verification link.

    404 for an unknown email, 400 if the email is already verified.
    """
    return _send_verification("Failed to send verification email")


@auth_bp.post("/resend-verification")
def resend_verification_route():
    """Same contract as send-verification; the previous link stops working."""
    return _send_verification("Failed to resend verification email")


@auth_bp.get("/verify-email")
def verify_email_route():
    try:
        auth_service.verify_email(request.args.get("token"))
        return jsonify({"message": "Email verified successfully"}), 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to verify email")


@auth_bp.post("/forgot-password")
def forgot_password_route():
    """Always 200 for a well-formed request, whether or not the account exists."""
    try:
        auth_service.request_password_reset(json_body().get("email"))
        return jsonify({"message": "If an account exists, a reset link has been sent"}), 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to process password reset request")


@auth_bp.post("/reset-password")
def reset_password_route():
    """
    Complete a password reset.

    Request body: {"token", "newPassword"} ("password" is accepted too).
    """
    try:
        data = json_body()
        auth_service.reset_password(
            data.get("token"),
            data.get("newPassword") or data.get("password"),
        )
        return jsonify({
            "message": "Password reset successfully. You can now login with your new password."
        }), 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to reset password")
