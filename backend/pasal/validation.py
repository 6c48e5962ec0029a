from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any


CENTS = Decimal("0.01")
QUANTITY_STEP = Decimal("0.0001")

# Maximum price or payment accepted from a client: 9,999,999.99
MAX_MONEY = Decimal("9999999.99")

# Largest quantity or multiplier that fits a Numeric(14, 4) column
MAX_QUANTITY = Decimal("9999999999.9999")


class DomainError(Exception):
    """Base for errors surfaced to API callers with a message and a stable code."""
    code = "error"
    status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        body = {"error": str(self), "code": self.code}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(DomainError, ValueError):
    """400-level input problem."""
    code = "validation_error"


class NotFoundError(DomainError, LookupError):
    """404-level missing record."""
    code = "not_found"
    status = 404


class BusinessRuleError(DomainError):
    """400-level business rule violation (stock, credit, balance)."""
    code = "business_rule_violation"


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class MissingBasePrice(ValidationError):
    code = "missing_base_price"


class UnitNotFound(ValidationError):
    code = "unit_not_found"


class ProductNotFound(NotFoundError):
    code = "product_not_found"


class CustomerNotFound(NotFoundError):
    code = "customer_not_found"


class SaleNotFound(NotFoundError):
    code = "sale_not_found"


class EmptyCart(BusinessRuleError):
    code = "empty_cart"


class InsufficientStock(BusinessRuleError):
    code = "insufficient_stock"


class CustomerRequiredForCredit(BusinessRuleError):
    code = "customer_required_for_credit"


class NoOutstandingBalance(BusinessRuleError):
    code = "no_outstanding_balance"


class NothingToApply(BusinessRuleError):
    code = "nothing_to_apply"


class CustomerHasBalance(BusinessRuleError):
    code = "customer_has_balance"


def to_decimal(value: Any, message: str, error_cls: type[ValidationError] = ValidationError) -> Decimal:
    """
    Parse a JSON scalar into a finite Decimal.

    Accepts ints, floats and numeric strings. Booleans, blanks and
    NaN/Infinity are rejected with ``error_cls(message)``.
    """
    if value is None or isinstance(value, bool):
        raise error_cls(message)
    if isinstance(value, Decimal):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            raise error_cls(message)
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            raise error_cls(message)
    if not parsed.is_finite():
        raise error_cls(message)
    return parsed


def round_money(value: Decimal) -> Decimal:
    try:
        return value.quantize(CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("Amount is out of range")


def round_quantity(value: Decimal) -> Decimal:
    try:
        return value.quantize(QUANTITY_STEP, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError("Quantity is out of range")


def parse_price(value: Any) -> Decimal:
    price = to_decimal(value, "Price must be a positive number")
    if price < 0:
        raise ValidationError("Price must be a positive number")
    if price > MAX_MONEY:
        raise ValidationError(f"Price cannot exceed {MAX_MONEY}")
    return price


def parse_rate(value: Any) -> Decimal:
    rate = to_decimal(value, "tax_rate must be a number")
    if rate < 0 or rate > 1:
        raise ValidationError("tax_rate must be a fraction between 0 and 1")
    return rate


def clean_text(value: Any, field: str, *, max_length: int, required: bool = False) -> str | None:
    """Trim a text field; enforce presence and max length."""
    if value is None:
        if required:
            raise ValidationError(f"{field} is required")
        return None
    text = str(value).strip()
    if required and not text:
        raise ValidationError(f"{field} is required")
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def as_number(value: Decimal | None) -> float | None:
    """JSON rendering for Numeric columns."""
    if value is None:
        return None
    return float(value)


def optional_id(value: Any, field: str) -> int | None:
    """Record id from a JSON body: None/blank -> None, else a positive int."""
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    try:
        parsed = int(str(value).strip())
    except ValueError:
        raise ValidationError(f"{field} must be an integer")
    if parsed <= 0:
        raise ValidationError(f"{field} must be a positive integer")
    return parsed
