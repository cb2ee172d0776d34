# backend/storefront/routes/reviews.py
"""
Review API routes.

Public reads only ever see APPROVED reviews. Moderation (PATCH) and delete
are admin-only and refresh the product's rating aggregate.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import review_service
from ..validation import ValidationError, NotFoundError, ConflictError, json_object
from ..decorators import require_auth, require_admin


reviews_bp = Blueprint("reviews", __name__, url_prefix="/api/reviews")


@reviews_bp.get("")
def list_reviews_route():
    """Approved reviews for ?product_id=, newest first."""
    try:
        reviews = review_service.list_product_reviews(request.args.get("product_id"))
        return jsonify({"reviews": reviews}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to fetch reviews")
        return jsonify({"error": "Internal server error"}), 500


@reviews_bp.post("")
@require_auth
def create_review_route():
    """
    Request body:
    {
        "product_id": 5,
        "rating": 4,
        "title": "Great" (optional),
        "comment": "..."
    }

    Returns:
        201: Review created as PENDING
        409: Caller already reviewed this product
    """
    try:
        data = json_object(request.get_json(silent=True))
        review = review_service.create_review(g.current_user.id, data)
        return jsonify({"review": review.to_dict()}), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create review")
        return jsonify({"error": "Internal server error"}), 500


@reviews_bp.get("/admin")
@require_auth
@require_admin
def list_reviews_admin_route():
    """Query: ?status=PENDING|APPROVED|REJECTED|all&page=&limit="""
    try:
        result = review_service.list_reviews_admin(
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
        return jsonify({"reviews": result["items"], "pagination": result["pagination"]}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to fetch reviews")
        return jsonify({"error": "Internal server error"}), 500


@reviews_bp.patch("/admin/<int:review_id>")
@require_auth
@require_admin
def moderate_review_route(review_id: int):
    """Request body: {"status": "APPROVED" | "REJECTED"}"""
    try:
        data = json_object(request.get_json(silent=True))
        review = review_service.moderate_review(review_id, data.get("status"))
        return jsonify({"review": review.to_dict(include_product=True)}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to update review")
        return jsonify({"error": "Internal server error"}), 500


@reviews_bp.delete("/admin/<int:review_id>")
@require_auth
@require_admin
def delete_review_route(review_id: int):
    try:
        review_service.delete_review(review_id)
        return jsonify({"message": "Review deleted successfully"}), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete review")
        return jsonify({"error": "Internal server error"}), 500
