# backend/storefront/routes/orders.py
"""
Order API routes.

Checkout (POST) is open to guests. Reads are limited to the order's owner
(account or guest email) and admins. Status and payment-status changes are
admin-only and validated against the transition tables in Config.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import order_service, permission_service
from ..validation import ValidationError, NotFoundError, ConflictError, json_object
from ..decorators import require_auth, require_admin, optional_auth


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@optional_auth
def create_order_route():
    """
    Place an order.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2, "color": "", "size": ""}],
        "payment_method": "CASH_ON_DELIVERY" | "BKASH" | "CARD",
        "shipping_address_id": 3,                  (signed-in customers)
        "guest_email": "...",                      (guests)
        "guest_shipping_address": {...},           (guests)
        "tax_cents": 0, "shipping_cents": 0, "discount_cents": 0,
        "bkash_number": "...", "bkash_reference": "...", "bkash_transaction": "..."
    }

    Returns:
        201: Order created, stock reserved, cart cleared
        400: Invalid input or insufficient stock (nothing is written)
        404: Product or shipping address not found
    """
    try:
        data = json_object(request.get_json(silent=True))
        order = order_service.create_order(g.current_user, data)
        return jsonify({"order": order.to_dict(include_user=True)}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("")
@require_auth
def list_orders_route():
    """Query: ?search=&status=&payment_method=&page=&limit="""
    try:
        search = request.args.get("search", "")
        status = request.args.get("status", "")
        payment_method = request.args.get("payment_method", "")
        result = order_service.list_orders(
            g.current_user,
            search=search,
            status=status,
            payment_method=payment_method,
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
        pagination = result["pagination"]
        return jsonify({
            "orders": result["items"],
            "meta": {
                "total": pagination["total"],
                "page": pagination["page"],
                "limit": pagination["limit"],
                "pages": pagination["total_pages"],
                "search": search,
                "status": status,
                "payment_method": payment_method,
                "is_admin": result["is_admin"],
            },
        }), 200
    except Exception:
        current_app.logger.exception("Failed to fetch orders")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(g.current_user, order_id)
        return jsonify({"order": order.to_dict(include_user=permission_service.is_admin(g.current_user))}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>")
@require_auth
def update_order_route(order_id: int):
    """
    {"action": "cancel"}  -> owner or admin cancels (PENDING/CONFIRMED only)
    {"status": ..., "payment_status": ..., "admin_notes": ...}  -> admin edit
    """
    try:
        data = json_object(request.get_json(silent=True))

        if data.get("action") == "cancel":
            order = order_service.cancel_order(g.current_user, order_id)
            return jsonify({
                "order": order.to_dict(include_user=permission_service.is_admin(g.current_user)),
                "message": "Order cancelled successfully. Stock has been restored.",
            }), 200

        if not permission_service.is_admin(g.current_user):
            return jsonify({"error": "Invalid action or insufficient permissions"}), 400

        order, stock_effect = order_service.admin_update_order(order_id, data)
        message = "Order updated successfully."
        if stock_effect == "restored":
            message += " Stock has been restored."
        elif stock_effect == "reduced":
            message += " Stock has been reduced."
        return jsonify({"order": order.to_dict(include_user=True), "message": message}), 200

    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.delete("/<int:order_id>")
@require_auth
def delete_order_route(order_id: int):
    try:
        order_service.delete_order(g.current_user, order_id)
        return jsonify({"message": "Order deleted successfully. Stock has been restored."}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/status")
@require_auth
@require_admin
def update_order_status_route(order_id: int):
    """Request body: {"status": "SHIPPED"}"""
    try:
        data = json_object(request.get_json(silent=True))
        order = order_service.update_status(order_id, data.get("status"))
        return jsonify({"order": order.to_dict(include_user=True), "message": "Order status updated successfully"}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.patch("/<int:order_id>/payment-status")
@require_auth
@require_admin
def update_payment_status_route(order_id: int):
    """Request body: {"payment_status": "COMPLETED"}"""
    try:
        data = json_object(request.get_json(silent=True))
        order = order_service.update_payment_status(order_id, data.get("payment_status"))
        return jsonify({"order": order.to_dict(include_user=True), "message": "Payment status updated successfully"}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update payment status")
        return jsonify({"error": "Internal server error"}), 500
