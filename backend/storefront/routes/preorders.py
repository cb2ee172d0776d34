# backend/storefront/routes/preorders.py
"""
Pre-order request routes.

POST is public and takes multipart/form-data with up to three "images" files.
Everything else is admin-only.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import preorder_service
from ..validation import ValidationError, NotFoundError, json_object
from ..decorators import require_auth, require_admin


preorders_bp = Blueprint("preorders", __name__, url_prefix="/api/preorders")


@preorders_bp.post("")
def create_preorder_route():
    try:
        preorder = preorder_service.create_preorder(request.form, request.files.getlist("images"))
        return jsonify({
            "message": "Preorder request submitted successfully",
            "preorder": preorder.to_dict(),
        }), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to submit preorder request")
        return jsonify({"error": "Internal server error"}), 500


@preorders_bp.get("")
@require_auth
@require_admin
def list_preorders_route():
    """Query: ?status=&page=&limit="""
    try:
        result = preorder_service.list_preorders(
            status=request.args.get("status") or None,
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"preorders": result["items"], "pagination": result["pagination"]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to fetch preorders")
        return jsonify({"error": "Internal server error"}), 500


@preorders_bp.get("/<int:preorder_id>")
@require_auth
@require_admin
def get_preorder_route(preorder_id: int):
    try:
        return jsonify({"preorder": preorder_service.get_preorder(preorder_id).to_dict()}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to fetch preorder")
        return jsonify({"error": "Internal server error"}), 500


@preorders_bp.put("/<int:preorder_id>")
@require_auth
@require_admin
def update_preorder_route(preorder_id: int):
    """Request body: {"status", "admin_notes", "estimated_price", "estimated_time"} (all optional)"""
    try:
        data = json_object(request.get_json(silent=True))
        preorder = preorder_service.update_preorder(preorder_id, data)
        return jsonify({"preorder": preorder.to_dict()}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update preorder")
        return jsonify({"error": "Internal server error"}), 500


@preorders_bp.delete("/<int:preorder_id>")
@require_auth
@require_admin
def delete_preorder_route(preorder_id: int):
    try:
        preorder_service.delete_preorder(preorder_id)
        return jsonify({"message": "Preorder deleted successfully"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete preorder")
        return jsonify({"error": "Internal server error"}), 500
