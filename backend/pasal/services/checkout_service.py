# Overview: Service-layer checkout; turns a cart into a persisted sale.

"""
Checkout Engine

Stages: validate cart -> resolve pricing -> compute totals -> verify stock ->
persist -> adjust stock -> update receivables.

Everything after validation runs in a single unit of work. Stock is removed
with a conditional decrement per line, so a concurrent checkout that drained
the product in the meantime fails the whole sale with InsufficientStock
instead of overselling. Any failure rolls back the sale, the stock
changes and the customer balance together.

MONEY: amounts are Decimals quantized to cents. Line subtotals are rounded
first, so total == subtotal - discount + tax holds exactly.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ..extensions import db
from ..models import Customer, Payment, Product, Sale, SaleItem
from ..models.customers import PAYMENT_TYPE_CHARGE, PAYMENT_TYPE_PAYMENT
from ..models.sales import SALE_STATUS_PAID, SALE_STATUS_PARTIAL, SALE_STATUS_UNPAID
from ..validation import (
    CustomerNotFound,
    CustomerRequiredForCredit,
    EmptyCart,
    InsufficientStock,
    InvalidAmount,
    ProductNotFound,
    UnitNotFound,
    ValidationError,
    clean_text,
    round_money,
    round_quantity,
    to_decimal,
)
from .concurrency import increment_quantity, lock_for_update, run_with_retry
from .products_service import product_base_unit
from .settings_service import get_settings
from .unit_service import DEFAULT_UNIT_NAME, derived_unit_price, parse_quantity, resolve_unit


ZERO = Decimal("0")
PRICE_PER_BASE_STEP = Decimal("0.0001")


@dataclass
class PricedLine:
    """A cart line after unit resolution and pricing."""
    product: Product
    unit_quantity: Decimal
    base_quantity: Decimal
    unit_level: int
    unit_label: str
    unit_multiplier: Decimal
    base_unit_label: str
    price_per_base_unit: Decimal
    unit_price: Decimal
    subtotal: Decimal

    def to_item(self, position: int) -> SaleItem:
        return SaleItem(
            position=position,
            product_id=self.product.id,
            name=self.product.name,
            quantity=self.base_quantity,
            unit_quantity=self.unit_quantity,
            unit_level=self.unit_level,
            unit_label=self.unit_label,
            unit_multiplier=self.unit_multiplier,
            base_unit_label=self.base_unit_label,
            price=self.price_per_base_unit,
            unit_price=self.unit_price,
            subtotal=self.subtotal,
        )


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    discount: Decimal
    tax: Decimal
    total: Decimal


@dataclass(frozen=True)
class PaymentSplit:
    paid: Decimal
    due: Decimal
    status: str


def price_line(product: Product, raw_quantity: Any, unit_level: Any = 0) -> PricedLine:
    """Resolve the unit for a cart line and price it. No stock check."""
    units = product.unit_definitions()
    if not units:
        raise UnitNotFound(f"{product.name} has no matching unit")

    unit = resolve_unit(units, unit_level)
    quantity = parse_quantity(raw_quantity, allow_zero=False)
    base_quantity = round_quantity(quantity * unit.multiplier)

    unit_price = derived_unit_price(unit, product.price)
    per_base = (unit_price / unit.multiplier).quantize(PRICE_PER_BASE_STEP)

    base = product_base_unit(product)
    return PricedLine(
        product=product,
        unit_quantity=quantity,
        base_quantity=base_quantity,
        unit_level=unit.level,
        unit_label=unit.name,
        unit_multiplier=unit.multiplier,
        base_unit_label=base.name if base else DEFAULT_UNIT_NAME,
        price_per_base_unit=per_base,
        unit_price=unit_price,
        subtotal=round_money(unit_price * quantity),
    )


def compute_totals(lines: list[PricedLine], discount_amount: Any, tax_rate: Decimal) -> Totals:
    """
    Discount is clamped into [0, subtotal]; unparseable input counts as no
    discount. Tax applies to the discounted subtotal and is rounded to cents
    (half up) like every stored amount.
    """
    subtotal = sum((line.subtotal for line in lines), ZERO)
    try:
        requested = to_decimal(discount_amount, "discount_amount must be a number")
    except ValidationError:
        requested = ZERO
    # Clamp before rounding; subtotal is whole cents so the result stays <= subtotal
    discount = round_money(min(max(ZERO, requested), subtotal))
    tax = round_money((subtotal - discount) * Decimal(tax_rate))
    return Totals(subtotal=subtotal, discount=discount, tax=tax, total=subtotal - discount + tax)


def split_payment(total: Decimal, amount_received: Any) -> PaymentSplit:
    """
    Paid/due split. No amount received means paid in full. Overpayment is
    capped at the total (change is handled at the till, not recorded).
    """
    if amount_received is None:
        received = total
    else:
        received = max(ZERO, to_decimal(amount_received, "Invalid amount received", InvalidAmount))
    paid = round_money(min(received, total))
    due = max(ZERO, round_money(total - paid))

    if due > 0:
        status = SALE_STATUS_PARTIAL if paid > 0 else SALE_STATUS_UNPAID
    else:
        status = SALE_STATUS_PAID
    return PaymentSplit(paid=paid, due=due, status=status)


def _check_stock(lines: list[PricedLine]) -> None:
    requested: dict[int, Decimal] = {}
    for line in lines:
        requested[line.product.id] = requested.get(line.product.id, ZERO) + line.base_quantity

    for line in lines:
        product = line.product
        wanted = requested.pop(product.id, None)
        if wanted is not None and Decimal(product.quantity) < wanted:
            raise InsufficientStock(
                f"{product.name} has insufficient stock",
                details={
                    "product_id": product.id,
                    "requested_quantity": float(wanted),
                    "on_hand": float(product.quantity),
                },
            )


def checkout(
    items: Any,
    *,
    customer_id: int | None = None,
    customer_name: str | None = None,
    amount_received: Any = None,
    payment_method: str | None = "cash",
    discount_amount: Any = 0,
    discount_note: str | None = None,
    due_note: str | None = None,
    notes: str | None = None,
) -> Sale:
    """
    Validate and complete a sale.

    ``items`` is a list of ``{product_id, quantity, unit_level}``; quantity is
    in the selected unit. Raises before persisting anything on any
    validation or business rule failure.
    """
    if not isinstance(items, list) or not items:
        raise EmptyCart("Cart items are required")

    method = clean_text(payment_method, "payment_method", max_length=32) or "cash"
    settings = get_settings()
    tax_rate = Decimal(settings.tax_rate)
    currency = settings.currency

    def _op():
        lines = []
        for raw in items:
            if not isinstance(raw, dict):
                raise ValidationError("Each cart item must be an object")
            product_id = raw.get("product_id")
            product = db.session.get(Product, product_id) if product_id is not None else None
            if not product:
                raise ProductNotFound(f"Product {product_id} not found")
            lines.append(price_line(product, raw.get("quantity"), raw.get("unit_level", 0)))

        _check_stock(lines)
        totals = compute_totals(lines, discount_amount, tax_rate)

        customer = None
        if customer_id is not None:
            customer = lock_for_update(
                db.session.query(Customer).filter_by(id=customer_id, is_active=True)
            ).first()
            if not customer:
                raise CustomerNotFound("Customer not found")

        split = split_payment(totals.total, amount_received)
        if split.due > 0 and not customer:
            raise CustomerRequiredForCredit("Customer is required for partial payments")

        sale = Sale(
            subtotal=totals.subtotal,
            discount_amount=totals.discount,
            discount_note=clean_text(discount_note, "discount_note", max_length=255),
            tax=totals.tax,
            total=totals.total,
            currency=currency,
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else clean_text(customer_name, "customer_name", max_length=255),
            payment_method=method,
            paid_amount=split.paid,
            due_amount=split.due,
            status=split.status,
            notes=clean_text(notes, "notes", max_length=10_000),
            due_note=clean_text(due_note, "due_note", max_length=255) or None,
            items=[line.to_item(position) for position, line in enumerate(lines)],
        )
        db.session.add(sale)
        db.session.flush()

        for line in lines:
            if not increment_quantity(line.product.id, -line.base_quantity, minimum=line.base_quantity):
                raise InsufficientStock(
                    f"{line.product.name} has insufficient stock",
                    details={"product_id": line.product.id},
                )

        if customer:
            if split.due > 0:
                customer.balance = max(ZERO, Decimal(customer.balance) + split.due)
            if split.paid > 0:
                db.session.add(Payment(
                    customer_id=customer.id,
                    sale_id=sale.id,
                    amount=split.paid,
                    method=method,
                    type=PAYMENT_TYPE_PAYMENT,
                ))
            if split.due > 0:
                db.session.add(Payment(
                    customer_id=customer.id,
                    sale_id=sale.id,
                    amount=split.due,
                    method=method,
                    type=PAYMENT_TYPE_CHARGE,
                ))

        db.session.commit()
        return sale

    return run_with_retry(_op)
