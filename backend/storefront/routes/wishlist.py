# backend/storefront/routes/wishlist.py
from flask import Blueprint, request, jsonify, g, current_app

from ..services import wishlist_service
from ..validation import ValidationError, NotFoundError, ConflictError, json_object
from ..decorators import require_auth, require_admin


wishlist_bp = Blueprint("wishlist", __name__, url_prefix="/api/wishlist")


@wishlist_bp.get("")
@require_auth
def get_wishlist_route():
    try:
        return jsonify({"wishlist": wishlist_service.get_wishlist(g.current_user.id)}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch wishlist")
        return jsonify({"error": "Internal server error"}), 500


@wishlist_bp.post("")
@require_auth
def add_to_wishlist_route():
    try:
        data = json_object(request.get_json(silent=True))
        item = wishlist_service.add_item(g.current_user.id, data.get("product_id"))
        return jsonify({"item": item.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to add item to wishlist")
        return jsonify({"error": "Internal server error"}), 500


@wishlist_bp.delete("/<int:item_id>")
@require_auth
def remove_wishlist_item_route(item_id: int):
    try:
        wishlist_service.remove_item(g.current_user.id, item_id)
        return jsonify({"message": "Item removed from wishlist"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to remove wishlist item")
        return jsonify({"error": "Internal server error"}), 500


@wishlist_bp.delete("/product/<int:product_id>")
@require_auth
def remove_wishlist_product_route(product_id: int):
    try:
        wishlist_service.remove_product(g.current_user.id, product_id)
        return jsonify({"message": "Item removed from wishlist"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to remove wishlist product")
        return jsonify({"error": "Internal server error"}), 500


@wishlist_bp.get("/admin")
@require_auth
@require_admin
def admin_wishlists_route():
    """All customer wishlists grouped per user, with stats. Query: ?search=."""
    try:
        return jsonify(wishlist_service.admin_overview(request.args.get("search"))), 200
    except Exception:
        current_app.logger.exception("Failed to fetch wishlists")
        return jsonify({"error": "Internal server error"}), 500
