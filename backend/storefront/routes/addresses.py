# backend/storefront/routes/addresses.py
from flask import Blueprint, request, jsonify, g, current_app

from ..services import address_service, permission_service
from ..validation import ValidationError, NotFoundError, DependencyConflictError, json_object
from ..decorators import require_auth


addresses_bp = Blueprint("addresses", __name__, url_prefix="/api/addresses")


@addresses_bp.get("")
@require_auth
def list_addresses_route():
    """Own addresses (default first). Admins receive every address with its owner."""
    try:
        return jsonify({
            "addresses": address_service.list_addresses(g.current_user),
            "is_admin": permission_service.is_admin(g.current_user),
        }), 200
    except Exception:
        current_app.logger.exception("Failed to fetch addresses")
        return jsonify({"error": "Internal server error"}), 500


@addresses_bp.post("")
@require_auth
def create_address_route():
    """
    Request body:
    {
        "first_name": "...", "last_name": "...", "street": "...", "city": "...",
        "state": "...", "postal_code": "...", "phone": "...",
        "country": "..." (optional), "is_default": true (optional)
    }
    """
    try:
        data = json_object(request.get_json(silent=True))
        address = address_service.create_address(g.current_user.id, data)
        return jsonify({"address": address.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create address")
        return jsonify({"error": "Internal server error"}), 500


@addresses_bp.put("/<int:address_id>")
@require_auth
def update_address_route(address_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        address = address_service.update_address(g.current_user.id, address_id, data)
        return jsonify({"address": address.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update address")
        return jsonify({"error": "Internal server error"}), 500


@addresses_bp.delete("/<int:address_id>")
@require_auth
def delete_address_route(address_id: int):
    try:
        address_service.delete_address(g.current_user.id, address_id)
        return jsonify({"message": "Address deleted successfully"}), 200
    except DependencyConflictError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete address")
        return jsonify({"error": "Internal server error"}), 500
