# backend/storefront/routes/auth.py
"""
Authentication API routes.

Sign-up creates customer accounts only; admins are promoted through the CLI
(`flask users set-role`).
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import auth_service, session_service, permission_service
from ..services.auth_service import PasswordValidationError
from ..validation import ValidationError, ConflictError, json_object


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


def _bearer_token():
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


@auth_bp.post("/register")
def register_route():
    """
    Request body: {"email": "...", "password": "...", "name": "..." (optional)}

    Returns:
        201: Account created (customer role) plus a session token
        400: Invalid email or weak password
        409: Email already registered
    """
    try:
        data = json_object(request.get_json(silent=True))
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.create_user(email=email, password=password, name=data.get("name"))
        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )
        return jsonify({
            "user": user.to_dict(),
            "token": token,
            "session": session.to_dict(),
            "message": "Registration successful",
        }), 201

    except PasswordValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to register user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/login")
def login_route():
    """
    Authenticate user and create session token.

    Token must be included in Authorization header for protected routes.
    """
    try:
        data = json_object(request.get_json(silent=True))
        email = data.get("email")
        password = data.get("password")

        if not all([email, password]):
            return jsonify({"error": "email and password required"}), 400

        user = auth_service.authenticate(email, password)
        if not user:
            return jsonify({"error": "Invalid credentials"}), 401

        session, token = session_service.create_session(
            user_id=user.id,
            user_agent=request.headers.get("User-Agent"),
            ip_address=request.remote_addr,
        )

        return jsonify({
            "user": user.to_dict(),
            "is_admin": permission_service.is_admin(user),
            "token": token,
            "session": session.to_dict(),
            "message": "Login successful"
        }), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to login user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke session token. Expects Authorization header: Bearer <token>"""
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        if not session_service.revoke_session(token, reason="User logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout user")
        return jsonify({"error": "Internal server error"}), 500


@auth_bp.post("/validate")
def validate_route():
    """Check a token and return the principal (user + admin flag)."""
    try:
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authorization header required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({
            "user": context.user.to_dict(),
            "is_admin": permission_service.is_admin(context.user),
            "message": "Token valid"
        }), 200

    except Exception:
        current_app.logger.exception("Failed to validate session")
        return jsonify({"error": "Internal server error"}), 500
