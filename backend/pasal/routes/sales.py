# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

# backend/pasal/routes/sales.py
"""Sales API routes: checkout, history and export"""

from flask import Blueprint, Response, current_app, jsonify, request

from ..config import ROLE_ADMIN, ROLE_STAFF
from ..decorators import require_auth, require_role
from ..extensions import db
from ..models import Sale
from ..services import checkout_service, reporting_service
from ..validation import DomainError, SaleNotFound, optional_id
from . import internal_error, json_error


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


@sales_bp.post("/checkout")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def checkout_route():
    """
    Complete a sale.

    Request body:
    {
        "items": [{"product_id": int, "quantity": number, "unit_level": int}],
        "customer_id": int (optional), "customer_name": str (optional),
        "amount_received": number (optional, defaults to the total),
        "payment_method": str, "discount_amount": number, "discount_note": str,
        "due_note": str, "notes": str
    }

    Returns:
        201: Sale
        400: Validation or business rule failure
        404: Product or customer not found
    """
    data = request.get_json(silent=True) or {}
    try:
        sale = checkout_service.checkout(
            data.get("items"),
            customer_id=optional_id(data.get("customer_id"), "customer_id"),
            customer_name=data.get("customer_name"),
            amount_received=data.get("amount_received"),
            payment_method=data.get("payment_method") or "cash",
            discount_amount=data.get("discount_amount", 0),
            discount_note=data.get("discount_note"),
            due_note=data.get("due_note"),
            notes=data.get("notes"),
        )
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Checkout failed")

    current_app.logger.info("Sale %s completed: total=%s due=%s", sale.id, sale.total, sale.due_amount)
    return jsonify(sale.to_dict()), 201


@sales_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_sales_route():
    sales = reporting_service.list_sales()
    return jsonify({"items": [s.to_dict() for s in sales], "count": len(sales)})


@sales_bp.get("/export")
@require_auth
@require_role(ROLE_ADMIN)
def export_sales_route():
    """Download all sales. ?format=csv for one row per item, JSON otherwise."""
    try:
        sales = reporting_service.list_sales()
        if request.args.get("format") == "csv":
            return Response(
                reporting_service.sales_csv(sales),
                mimetype="text/csv",
                headers={"Content-Disposition": "attachment; filename=sales.csv"},
            )
        return Response(reporting_service.sales_json(sales), mimetype="application/json")
    except Exception:
        return internal_error("Failed to export sales")


@sales_bp.get("/<int:sale_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_sale_route(sale_id: int):
    sale = db.session.get(Sale, sale_id)
    if not sale:
        return json_error(SaleNotFound("Sale not found"))
    return jsonify(sale.to_dict()), 200
