# backend/storefront/routes/user.py
from flask import Blueprint, request, jsonify, g, current_app

from ..services import user_service
from ..validation import ValidationError, ConflictError, json_object
from ..decorators import require_auth


user_bp = Blueprint("user", __name__, url_prefix="/api/user")


@user_bp.get("")
@require_auth
def get_profile_route():
    try:
        return jsonify({"user": user_service.get_profile(g.current_user)}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch user data")
        return jsonify({"error": "Internal server error"}), 500


@user_bp.put("")
@require_auth
def update_profile_route():
    """Request body: {"name": "...", "email": "...", "phone": "..." (optional)}"""
    try:
        data = json_object(request.get_json(silent=True))
        user = user_service.update_profile(g.current_user, data)
        return jsonify({"user": user.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update user data")
        return jsonify({"error": "Internal server error"}), 500
