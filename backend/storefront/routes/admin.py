# Overview: Flask API routes for administrator authentication and back-office password management.

# backend/storefront/routes/admin.py
"""
Administrator authentication API routes

- POST /api/admin/auth/create   create an administrator
- POST /api/admin/auth/login    email + password -> bearer token
- POST /api/admin/auth/logout   revoke one session
- POST /api/admin/auth/verify   validate a token passed in the body
- GET  /api/admin/auth/me       validate the Authorization header
- POST /api/admin/set-password  set a customer's password (admin only)
"""

from flask import Blueprint, request, jsonify, g

from ..errors import AuthError
from ..models import PrincipalClass
from ..services import auth_service
from ..decorators import require_admin, bearer_token
from . import json_body, client_ip, error_response, internal_error_response


admin_bp = Blueprint("admin", __name__, url_prefix="/api/admin")


@admin_bp.post("/auth/create")
def create_admin_route():
    """
    Create an administrator account.

    Request body: {"email", "password", "name", "image"?}
    Returns 201 with the admin record (never the password digest).
    """
    try:
        data = json_body()
        admin = auth_service.create_admin(
            email=data.get("email"),
            password=data.get("password"),
            name=data.get("name"),
            image=data.get("image"),
        )
        return jsonify(admin.to_dict()), 201

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to create admin")


@admin_bp.post("/auth/login")
def login_route():
    """
    Authenticate an administrator and create a 7-day session.

    Returns {"success", "token", "admin"}. Wrong password and unknown email
    produce the same INVALID_CREDENTIALS response.
    """
    try:
        data = json_body()
        session, admin = auth_service.login(
            PrincipalClass.ADMIN,
            data.get("email"),
            data.get("password"),
            ip_address=client_ip(),
            user_agent=request.headers.get("User-Agent"),
        )
        return jsonify({
            "success": True,
            "token": session.token,
            "admin": admin.to_public_dict(),
        }), 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to login admin")


@admin_bp.post("/auth/logout")
def logout_route():
    """
    Revoke the session named by body "token" (or the Bearer header).

    Other sessions of the same admin stay valid.
    """
    try:
        token = json_body().get("token") or bearer_token()
        auth_service.logout(PrincipalClass.ADMIN, token)
        return jsonify({"success": True, "message": "Logged out successfully"}), 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to logout admin")


@admin_bp.post("/auth/verify")
def verify_route():
    """
    Validate an admin session token.

    Returns {"valid": true, "admin", "session"}. An expired session is
    deleted and reported as SESSION_EXPIRED.
    """
    try:
        token = json_body().get("token") or bearer_token()
        context = auth_service.verify_session(PrincipalClass.ADMIN, token)
        return jsonify({"valid": True, **context.to_dict("admin")}), 200

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to verify admin session")


@admin_bp.get("/auth/me")
@require_admin
def me_route():
    return jsonify(g.session_context.to_dict("admin")), 200


@admin_bp.post("/set-password")
@require_admin
def set_password_route():
    """
    Set or replace a customer's password credential.

    Request body: {"userId" (or "principalId"), "password"}
    """
    try:
        data = json_body()
        principal_id = data.get("userId") or data.get("principalId")
        customer = auth_service.set_password(principal_id, data.get("password"))
        return jsonify({
            "success": True,
            "message": "Password set successfully",
            "userId": customer.id,
        }), 201

    except AuthError as e:
        return error_response(e)
    except Exception:
        return internal_error_response("Failed to set password")
