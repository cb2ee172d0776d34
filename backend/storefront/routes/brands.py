# backend/storefront/routes/brands.py
from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..validation import ValidationError, NotFoundError, ConflictError, DependencyConflictError, json_object
from ..decorators import require_auth, require_admin


brands_bp = Blueprint("brands", __name__, url_prefix="/api/dashboard/brands")


@brands_bp.get("")
def list_brands_route():
    """Query: ?limit=&featured=true"""
    try:
        brands = catalog_service.list_brands(
            limit=request.args.get("limit", type=int),
            featured=request.args.get("featured", "").lower() == "true",
        )
        return jsonify({"brands": brands}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch brands")
        return jsonify({"error": "Internal server error"}), 500


@brands_bp.get("/<int:brand_id>")
def get_brand_route(brand_id: int):
    try:
        return jsonify({"brand": catalog_service.get_brand(brand_id)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch brand")
        return jsonify({"error": "Internal server error"}), 500


@brands_bp.post("")
@require_auth
@require_admin
def create_brand_route():
    try:
        data = json_object(request.get_json(silent=True))
        brand = catalog_service.create_brand(data)
        return jsonify({"brand": brand.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create brand")
        return jsonify({"error": "Internal server error"}), 500


@brands_bp.put("/<int:brand_id>")
@require_auth
@require_admin
def update_brand_route(brand_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        brand = catalog_service.update_brand(brand_id, data)
        return jsonify({"brand": brand.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update brand")
        return jsonify({"error": "Internal server error"}), 500


@brands_bp.delete("/<int:brand_id>")
@require_auth
@require_admin
def delete_brand_route(brand_id: int):
    try:
        catalog_service.delete_brand(brand_id)
        return jsonify({"message": "Brand deleted successfully"}), 200
    except DependencyConflictError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete brand")
        return jsonify({"error": "Internal server error"}), 500
