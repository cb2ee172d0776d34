# backend/storefront/routes/categories.py
from flask import Blueprint, request, jsonify, current_app

from ..services import catalog_service
from ..validation import ValidationError, NotFoundError, ConflictError, DependencyConflictError, json_object
from ..decorators import require_auth, require_admin


categories_bp = Blueprint("categories", __name__, url_prefix="/api/dashboard/categories")


@categories_bp.get("")
def list_categories_route():
    try:
        return jsonify({"categories": catalog_service.list_categories()}), 200
    except Exception:
        current_app.logger.exception("Failed to fetch categories")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.get("/<int:category_id>")
def get_category_route(category_id: int):
    try:
        return jsonify({"category": catalog_service.get_category(category_id)}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.post("")
@require_auth
@require_admin
def create_category_route():
    try:
        data = json_object(request.get_json(silent=True))
        category = catalog_service.create_category(data)
        return jsonify({"category": category.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.put("/<int:category_id>")
@require_auth
@require_admin
def update_category_route(category_id: int):
    try:
        data = json_object(request.get_json(silent=True))
        category = catalog_service.update_category(category_id, data)
        return jsonify({"category": category.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update category")
        return jsonify({"error": "Internal server error"}), 500


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_admin
def delete_category_route(category_id: int):
    try:
        catalog_service.delete_category(category_id)
        return jsonify({"message": "Category deleted successfully"}), 200
    except DependencyConflictError as e:
        return jsonify(e.to_dict()), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500
