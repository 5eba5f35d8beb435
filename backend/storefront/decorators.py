# Overview: Request authentication decorators for API routes.

from functools import wraps
from flask import current_app, request, jsonify, g

from .errors import AuthError, AuthenticationError, ErrorCode
from .models import PrincipalClass
from .services import session_service


def bearer_token() -> str | None:
    """Token from an "Authorization: Bearer <token>" header, if present."""
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    token = auth_header.split(" ", 1)[1].strip()
    return token or None


def _authenticate(principal_class: PrincipalClass, token: str | None):
    if not token:
        raise AuthenticationError(ErrorCode.AUTHENTICATION_REQUIRED, "Authentication required")

    context = session_service.validate_session(principal_class, token)

    g.current_principal = context.principal
    g.session_context = context
    return context


def _guard(principal_class: PrincipalClass, token_source):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                _authenticate(principal_class, token_source())
            except AuthError as e:
                return jsonify(e.to_dict()), e.status_code
            except Exception:
                current_app.logger.exception("Failed to authenticate request")
                return jsonify({"error": "Internal server error", "code": ErrorCode.INTERNAL_ERROR.value}), 500

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def _customer_token() -> str | None:
    """Bearer header first, then the storefront session cookie."""
    token = bearer_token()
    if token:
        return token
    cookie_name = current_app.config.get("SESSION_COOKIE_NAME_CUSTOMER", "storefront_session")
    return request.cookies.get(cookie_name) or None


def require_admin(f):
    """
    Require an administrator bearer session.

    Sets on Flask g:
    - g.current_principal: the authenticated Admin
    - g.session_context: the SessionContext (admin + session row)

    Returns 401 for a missing, unknown, or expired token, and 404 when the
    session's admin no longer exists.
    """
    return _guard(PrincipalClass.ADMIN, bearer_token)(f)


def require_customer(f):
    """
    Require a customer session from the Authorization header or the session
    cookie. Sets g.current_principal and g.session_context like require_admin.
    """
    return _guard(PrincipalClass.CUSTOMER, _customer_token)(f)
