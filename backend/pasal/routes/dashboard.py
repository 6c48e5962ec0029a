# Overview: Flask API route for the admin dashboard summary.

from flask import Blueprint, current_app, jsonify

from ..config import ROLE_ADMIN
from ..decorators import require_auth, require_role
from ..services import reporting_service
from . import internal_error


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def dashboard_route():
    """
    Inventory and sales overview.

    Returns total_products, total_inventory_value, low_stock, total_sales,
    sale_count, top_selling and total_receivables.
    """
    try:
        summary = reporting_service.inventory_summary(
            low_stock_threshold=current_app.config["LOW_STOCK_THRESHOLD"],
        )
    except Exception:
        return internal_error("Failed to build dashboard")
    return jsonify(summary), 200
