# Request decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a valid session.

    Sets:
    - g.current_user: The authenticated User object
    - g.session_context: The full SessionContext object

    Returns 401 if the header is missing or the token is invalid, expired,
    revoked, or belongs to a deactivated account.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = context.user
        g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def optional_auth(f):
    """
    Resolve the principal when a token is supplied; otherwise continue as guest.

    g.current_user is None for guests. A supplied but invalid token is still 401.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        g.current_user = None
        g.session_context = None
        if token:
            context = session_service.validate_session(token)
            if not context:
                return jsonify({"error": "Invalid or expired token"}), 401
            g.current_user = context.user
            g.session_context = context
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """
    Require an admin principal. Must be stacked under @require_auth.

    Non-admins get the same 401 as anonymous callers.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not permission_service.is_admin(getattr(g, "current_user", None)):
            return jsonify({"error": "Unauthorized"}), 401
        return f(*args, **kwargs)

    return decorated_function
