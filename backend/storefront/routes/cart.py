# backend/storefront/routes/cart.py
"""
Cart API routes.

Quantities are reconciled against product stock by cart_service: adding to
an existing line or updating a line clamps to stock instead of failing.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import cart_service
from ..validation import ValidationError, NotFoundError, json_object
from ..decorators import require_auth


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


@cart_bp.get("")
@require_auth
def get_cart_route():
    try:
        return jsonify({"cart": cart_service.get_cart(g.current_user.id)}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.post("")
@require_auth
def add_to_cart_route():
    """
    Add a product to the cart.

    Request body:
    {
        "product_id": 12,
        "quantity": 2,        (optional, default: 1)
        "color": "Red",       (optional)
        "size": "M"           (optional)
    }

    Returns:
        201: Cart line after the merge/clamp
        400: Missing product_id, bad quantity, or insufficient stock
        404: Product not found
    """
    try:
        data = json_object(request.get_json(silent=True))
        item = cart_service.add_item(
            g.current_user.id,
            data.get("product_id"),
            quantity=data.get("quantity", 1),
            color=data.get("color"),
            size=data.get("size"),
        )
        return jsonify({"item": item.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to add item to cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("")
@require_auth
def clear_cart_route():
    try:
        cart_service.clear_cart(g.current_user.id)
        return jsonify({"message": "Cart cleared successfully"}), 200
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.put("/<int:item_id>")
@require_auth
def update_cart_item_route(item_id: int):
    """Set the quantity of a cart line (clamped to stock)."""
    try:
        data = json_object(request.get_json(silent=True))
        item = cart_service.update_quantity(g.current_user.id, item_id, data.get("quantity"))
        return jsonify({"item": item.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/<int:item_id>")
@require_auth
def remove_cart_item_route(item_id: int):
    try:
        cart_service.remove_item(g.current_user.id, item_id)
        return jsonify({"message": "Item removed from cart"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.post("/check-stock")
@require_auth
def check_stock_route():
    """
    Advisory stock check before checkout.

    Request body: {"items": [{"product_id": 1, "quantity": 2}, ...]}
    """
    try:
        data = json_object(request.get_json(silent=True))
        items = data.get("items")
        if not isinstance(items, list):
            return jsonify({"error": "Items array is required"}), 400
        return jsonify(cart_service.check_stock(items)), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to check stock availability")
        return jsonify({"error": "Internal server error"}), 500
