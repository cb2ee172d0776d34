# backend/storefront/routes/products.py
"""
Catalog product routes.

Listing and detail are public; create/update/delete are admin-only.
Products are addressed by slug.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..validation import ValidationError, NotFoundError, ConflictError, DependencyConflictError, json_object
from ..decorators import require_auth, require_admin


products_bp = Blueprint("products", __name__, url_prefix="/api/dashboard/products")
hot_deals_bp = Blueprint("hot_deals", __name__, url_prefix="/api/hot-deals")


def _flag(name: str) -> bool:
    return request.args.get(name, "").lower() == "true"


@products_bp.get("")
def list_products_route():
    """
    Query parameters:
    - page, limit
    - search: name/description/sku substring
    - category, brand: id or slug ("all" = no filter)
    - sort: featured | bestseller | newest | price-low-high | price-high-low
            | name-asc | name-desc | rating
    - featured, best_seller, new: "true" to filter
    - min_price, max_price: currency amounts
    """
    try:
        result = catalog_service.list_products(
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
            search=request.args.get("search"),
            category=request.args.get("category"),
            brand=request.args.get("brand"),
            sort=request.args.get("sort"),
            featured=_flag("featured"),
            best_seller=_flag("best_seller"),
            new=_flag("new"),
            min_price=request.args.get("min_price"),
            max_price=request.args.get("max_price"),
        )
        return jsonify({"products": result["items"], "pagination": result["pagination"]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to fetch products")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("")
@require_auth
@require_admin
def create_product_route():
    """
    Request body: product columns (price_cents, stock, category_id, ...) plus
    "images": [url, ...], "colors": [{"name", "hex_code"}], "specifications": {...}
    """
    try:
        data = json_object(request.get_json(silent=True))
        product = catalog_service.create_product(data)
        return jsonify({"product": product.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<slug>")
def get_product_route(slug: str):
    try:
        return jsonify({"product": catalog_service.get_product(slug)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.put("/<slug>")
@require_auth
@require_admin
def update_product_route(slug: str):
    try:
        data = json_object(request.get_json(silent=True))
        product = catalog_service.update_product(slug, data)
        return jsonify({"product": product.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.delete("/<slug>")
@require_auth
@require_admin
def delete_product_route(slug: str):
    try:
        catalog_service.delete_product(slug)
        return jsonify({"message": "Product deleted successfully"}), 200
    except DependencyConflictError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500


@hot_deals_bp.get("")
def hot_deals_route():
    try:
        return jsonify({"products": catalog_service.hot_deals()}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch hot deals")
        return jsonify({"error": "Internal server error"}), 500
