# Overview: Flask API routes for customer accounts and receivables payments.

from flask import Blueprint, current_app, jsonify, request

from ..config import ROLE_ADMIN, ROLE_STAFF
from ..decorators import require_auth, require_role
from ..services import customer_service, receivables_service
from ..validation import DomainError, optional_id
from . import internal_error, json_error


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_customers_route():
    """List active customers. ?search= matches name, phone or email."""
    customers = customer_service.list_customers(request.args.get("search"))
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)})


@customers_bp.post("")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def create_customer_route():
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(payload)
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to create customer")
    return jsonify(customer.to_dict()), 201


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def get_customer_route(customer_id: int):
    """Customer with open_sales and recent_sales."""
    try:
        return jsonify(customer_service.customer_detail(customer_id))
    except DomainError as e:
        return json_error(e)


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(customer_id, payload)
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to update customer")
    return jsonify(customer.to_dict()), 200


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to delete customer")
    return jsonify({"ok": True}), 200


@customers_bp.post("/<int:customer_id>/payments")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def record_payment_route(customer_id: int):
    """
    Apply a payment to the customer's open sales.

    Request body:
    {
        "amount": number,
        "sale_id": int (optional; otherwise oldest open sales first),
        "method": str (optional, default "cash"),
        "note": str (optional)
    }

    Returns:
        200: {customer, applied, remaining, payment, sales}
        400: Invalid amount or nothing to apply
        404: Customer or sale not found
    """
    data = request.get_json(silent=True) or {}
    try:
        result = receivables_service.record_payment(
            customer_id,
            data.get("amount"),
            sale_id=optional_id(data.get("sale_id"), "sale_id"),
            method=data.get("method") or "cash",
            note=data.get("note"),
        )
    except DomainError as e:
        return json_error(e)
    except Exception:
        return internal_error("Failed to record payment")

    current_app.logger.info(
        "Payment for customer %s: applied=%s remaining=%s", customer_id, result.applied, result.remaining
    )
    return jsonify(result.to_dict()), 200


@customers_bp.get("/<int:customer_id>/payments")
@require_auth
@require_role(ROLE_ADMIN, ROLE_STAFF)
def list_payments_route(customer_id: int):
    try:
        payments = receivables_service.list_payments(customer_id)
    except DomainError as e:
        return json_error(e)
    return jsonify({"items": [p.to_dict() for p in payments], "count": len(payments)})
