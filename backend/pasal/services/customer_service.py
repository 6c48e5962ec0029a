# Overview: Service-layer customer account management.

from __future__ import annotations

from ..extensions import db
from ..models import Customer, Sale
from ..validation import CustomerHasBalance, CustomerNotFound, clean_text
from .concurrency import lock_for_update, run_with_retry


RECENT_SALES_LIMIT = 20

# field -> max length
CUSTOMER_FIELDS = {
    "name": 255,
    "phone": 32,
    "email": 255,
    "address": 512,
    "notes": 10_000,
}


def _apply_fields(customer: Customer, payload: dict) -> None:
    for field, max_length in CUSTOMER_FIELDS.items():
        if field not in payload:
            continue
        value = clean_text(payload[field], field, max_length=max_length, required=field == "name")
        if field != "name":
            value = value or None
        setattr(customer, field, value)


def list_customers(search: str | None = None) -> list[Customer]:
    query = db.session.query(Customer).filter(Customer.is_active.is_(True))
    if search:
        pattern = f"%{search}%"
        query = query.filter(
            db.or_(
                Customer.name.ilike(pattern),
                Customer.phone.ilike(pattern),
                Customer.email.ilike(pattern),
            )
        )
    return query.order_by(Customer.name.asc(), Customer.id.asc()).all()


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if not customer or not customer.is_active:
        raise CustomerNotFound("Customer not found")
    return customer


def customer_detail(customer_id: int) -> dict:
    """Customer with open invoices and the most recent sales, newest first."""
    customer = get_customer(customer_id)
    newest_first = (Sale.created_at.desc(), Sale.id.desc())
    open_sales = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer.id, Sale.due_amount > 0)
        .order_by(*newest_first)
        .all()
    )
    recent_sales = (
        db.session.query(Sale)
        .filter(Sale.customer_id == customer.id)
        .order_by(*newest_first)
        .limit(RECENT_SALES_LIMIT)
        .all()
    )
    return {
        "customer": customer.to_dict(),
        "open_sales": [sale.to_dict() for sale in open_sales],
        "recent_sales": [sale.to_dict() for sale in recent_sales],
    }


def create_customer(payload: dict) -> Customer:
    customer = Customer(balance=0, is_active=True)
    _apply_fields(customer, {"name": payload.get("name"), **payload})

    def _op():
        db.session.add(customer)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def update_customer(customer_id: int, payload: dict) -> Customer:
    """Contact details only; the balance belongs to the receivables ledger."""
    def _op():
        customer = get_customer(customer_id)
        _apply_fields(customer, payload)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(customer_id: int) -> None:
    """Deactivate an account with no outstanding balance."""
    def _op():
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, is_active=True)
        ).first()
        if not customer:
            raise CustomerNotFound("Customer not found")
        if customer.balance > 0:
            raise CustomerHasBalance("Clear outstanding balance before deleting")
        # Soft-delete only: sales and ledger entries keep pointing at the row
        customer.is_active = False
        db.session.commit()

    run_with_retry(_op)
