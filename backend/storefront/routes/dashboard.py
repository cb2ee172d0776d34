# backend/storefront/routes/dashboard.py
from flask import Blueprint, request, jsonify, current_app

from ..services import dashboard_service
from ..decorators import require_auth, require_admin


dashboard_bp = Blueprint("dashboard", __name__)


@dashboard_bp.get("/api/dashboard")
@require_auth
@require_admin
def dashboard_route():
    """Headline stats, revenue chart data, top products and recent orders."""
    try:
        return jsonify(dashboard_service.get_dashboard()), 200
    except Exception:
        current_app.logger.exception("Failed to fetch dashboard data")
        return jsonify({"error": "Internal server error"}), 500


@dashboard_bp.get("/api/customers")
@require_auth
@require_admin
def customers_route():
    """Query: ?search=&page=&limit="""
    try:
        search = request.args.get("search", "")
        result = dashboard_service.list_customers(
            search=search,
            page=request.args.get("page", type=int),
            limit=request.args.get("limit", type=int),
        )
        pagination = result["pagination"]
        return jsonify({
            "customers": result["items"],
            "meta": {
                "total": pagination["total"],
                "page": pagination["page"],
                "limit": pagination["limit"],
                "pages": pagination["total_pages"],
                "search": search,
                "active_customers": result["active_customers"],
                "total_revenue_cents": result["total_revenue_cents"],
            },
        }), 200
    except Exception:
        current_app.logger.exception("Failed to fetch customers")
        return jsonify({"error": "Internal server error"}), 500
