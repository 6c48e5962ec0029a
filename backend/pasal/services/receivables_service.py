# Overview: Service-layer receivables ledger; applies customer payments to open sales.

"""
Receivables Ledger

A customer's balance is the sum of due_amount over their sales. Checkout
raises it; payments recorded here lower it.

ALLOCATION:
- sale_id given: that sale is the only target
- otherwise: every sale with due_amount > 0, oldest first (FIFO)

The payment is applied up to the outstanding debt. Any excess is reported
back as ``remaining`` and is neither stored as credit nor rejected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..extensions import db
from ..models import Customer, Payment, Sale
from ..models.customers import PAYMENT_TYPE_PAYMENT
from ..models.sales import SALE_STATUS_PAID, SALE_STATUS_PARTIAL
from ..validation import (
    CENTS,
    MAX_MONEY,
    CustomerNotFound,
    InvalidAmount,
    NoOutstandingBalance,
    NothingToApply,
    SaleNotFound,
    clean_text,
    round_money,
    to_decimal,
)
from .concurrency import lock_for_update, run_with_retry


ZERO = Decimal("0")


@dataclass
class PaymentResult:
    customer: Customer
    applied: Decimal
    remaining: Decimal
    payment: Payment
    sales: list[Sale] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "customer": self.customer.to_dict(),
            "applied": float(self.applied),
            "remaining": float(self.remaining),
            "payment": self.payment.to_dict(),
            "sales": [sale.to_dict() for sale in self.sales],
        }


def parse_payment_amount(amount: Any) -> Decimal:
    """
    Positive amount rounded to cents. Amounts that round to zero are
    rejected, as are amounts above MAX_MONEY.
    """
    message = "Payment amount must be greater than zero"
    parsed = to_decimal(amount, message, InvalidAmount)
    if parsed <= 0:
        raise InvalidAmount(message)
    if parsed > MAX_MONEY:
        raise InvalidAmount(f"Payment amount cannot exceed {MAX_MONEY}")
    rounded = round_money(parsed)
    if rounded <= 0:
        raise InvalidAmount(f"Payment amount must be at least {CENTS}")
    return rounded


def open_sales(customer_id: int) -> list[Sale]:
    """Sales with an outstanding balance, oldest first."""
    return (
        lock_for_update(
            db.session.query(Sale)
            .filter(Sale.customer_id == customer_id, Sale.due_amount > 0)
        )
        .order_by(Sale.created_at.asc(), Sale.id.asc())
        .all()
    )


def allocate(targets: list[Sale], amount: Decimal) -> tuple[Decimal, Decimal]:
    """
    Walk ``targets`` in order paying each down. Mutates the sales and
    returns (applied, remaining).
    """
    remaining = amount
    applied = ZERO
    for sale in targets:
        if remaining <= 0:
            break
        due = Decimal(sale.due_amount)
        portion = min(due, remaining)
        sale.due_amount = due - portion
        sale.paid_amount = Decimal(sale.paid_amount) + portion
        sale.status = SALE_STATUS_PARTIAL if sale.due_amount > 0 else SALE_STATUS_PAID
        remaining -= portion
        applied += portion
    return applied, remaining


def record_payment(
    customer_id: int,
    amount: Any,
    *,
    sale_id: int | None = None,
    method: str | None = "cash",
    note: str | None = None,
) -> PaymentResult:
    """
    Apply a customer payment to their open sales.

    Raises:
        InvalidAmount: amount missing, non-numeric or not positive
        CustomerNotFound / SaleNotFound: unknown customer, or sale not theirs
        NoOutstandingBalance: targeted sale is already paid
        NothingToApply: no open debt absorbed any of the amount
    """
    parsed = parse_payment_amount(amount)
    method = clean_text(method, "method", max_length=32) or "cash"
    note = clean_text(note, "note", max_length=255)

    def _op():
        customer = lock_for_update(
            db.session.query(Customer).filter_by(id=customer_id, is_active=True)
        ).first()
        if not customer:
            raise CustomerNotFound("Customer not found")

        if sale_id is not None:
            sale = lock_for_update(
                db.session.query(Sale).filter_by(id=sale_id, customer_id=customer.id)
            ).first()
            if not sale:
                raise SaleNotFound("Sale not found for this customer")
            if sale.due_amount <= 0:
                raise NoOutstandingBalance("Sale has no outstanding balance")
            targets = [sale]
        else:
            targets = open_sales(customer.id)

        applied, remaining = allocate(targets, parsed)
        if applied == 0:
            raise NothingToApply("No outstanding balance to apply payment")

        customer.balance = max(ZERO, Decimal(customer.balance) - applied)

        payment = Payment(
            customer_id=customer.id,
            sale_id=sale_id,
            amount=applied,
            method=method,
            type=PAYMENT_TYPE_PAYMENT,
            note=note,
        )
        db.session.add(payment)
        db.session.commit()

        sales = (
            db.session.query(Sale)
            .filter_by(customer_id=customer.id)
            .order_by(Sale.created_at.desc(), Sale.id.desc())
            .all()
        )
        return PaymentResult(
            customer=customer,
            applied=applied,
            remaining=remaining,
            payment=payment,
            sales=sales,
        )

    return run_with_retry(_op)


def list_payments(customer_id: int) -> list[Payment]:
    """Ledger entries for a customer, newest first."""
    if not db.session.get(Customer, customer_id):
        raise CustomerNotFound("Customer not found")
    return (
        db.session.query(Payment)
        .filter_by(customer_id=customer_id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .all()
    )


def outstanding_total(customer_id: int) -> Decimal:
    """Sum of due amounts across a customer's sales."""
    total = (
        db.session.query(db.func.coalesce(db.func.sum(Sale.due_amount), 0))
        .filter(Sale.customer_id == customer_id)
        .scalar()
    )
    return round_money(Decimal(str(total)))
