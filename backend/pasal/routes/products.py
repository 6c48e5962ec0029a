# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/pasal/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations are open to admin and staff
- Write operations (create, update, delete, purchase) require admin
"""
from flask import Blueprint, current_app, jsonify, request

from ..config import ROLE_ADMIN, ROLE_STAFF
from ..decorators import require_auth, require_role
from ..services import products_service
from ..validation import DomainError
from . import internal_error, json_error

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_products():
    """
    List products.

    Query params:
    - search: name contains (case-insensitive)
    - category: category contains (case-insensitive)
    - min_price / max_price: base unit price bounds
    - stock_status: low | out | in
    - sort: recent (default) | priceAsc | priceDesc | stock
    """
    try:
        products = products_service.list_products(
            search=request.args.get("search"),
            category=request.args.get("category"),
            min_price=request.args.get("min_price"),
            max_price=request.args.get("max_price"),
            stock_status=request.args.get("stock_status"),
            sort=request.args.get("sort"),
            low_stock_threshold=current_app.config["LOW_STOCK_THRESHOLD"],
        )
    except DomainError as e:
        return json_error(e)
    return jsonify({"items": [p.to_dict() for p in products], "count": len(products)})


@products_bp.get("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_product(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except DomainError as e:
        return json_error(e)
    return jsonify(product.to_dict())


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    """
    Create a product.

    Request body:
    {
        "name": str, "category": str, "description": str (optional),
        "units": [{"name": str, "multiplier": number, "price": number}] or JSON string,
        "price": number (used when the base unit has no price),
        "quantity": number,
        "stock_input_unit_level": int (unit level of "quantity", default 0)
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.create_product(payload)
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to create product")
    return jsonify(product.to_dict()), 201


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id: int):
    """
    Partially update a product.

    "quantity" replaces stock and is read in "quantity_unit_level" units.
    """
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.update_product(product_id, payload)
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to update product")
    return jsonify(product.to_dict()), 200


@products_bp.post("/<int:product_id>/purchase")
@require_auth
@require_role(ROLE_ADMIN)
def record_purchase_route(product_id: int):
    """Restock. Body: {"quantity": number, "unit_level": int}"""
    payload = request.get_json(silent=True) or {}
    try:
        product = products_service.record_purchase(
            product_id,
            payload.get("quantity"),
            payload.get("unit_level", 0),
        )
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to record purchase")

    current_app.logger.info("Recorded purchase for product %s; stock now %s", product.id, product.quantity)
    return jsonify(product.to_dict()), 200


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(product_id)
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to delete product")
    return jsonify({"ok": True}), 200
