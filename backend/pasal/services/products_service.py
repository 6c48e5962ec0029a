# backend/pasal/services/products_service.py
"""
Catalog Store

Owns product records, their unit hierarchy and stock on hand.

STOCK: Product.quantity is always in base units. Creation and update set it
absolutely; purchases add to it; checkout removes from it through
concurrency.increment_quantity so the sufficiency check and the decrement
happen in one statement.

PRICE: Product.price and the base unit's price are written together on
every path that changes either.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any

from ..extensions import db
from ..models import Product, ProductUnit
from ..validation import (
    ProductNotFound,
    ValidationError,
    clean_text,
    parse_price,
    round_quantity,
    to_decimal,
)
from .concurrency import increment_quantity, run_with_retry
from .unit_service import UnitDefinition, base_unit, normalize_units, to_base_quantity


SORTS = {
    "recent": (Product.created_at.desc(), Product.id.desc()),
    "priceAsc": (Product.price.asc(), Product.id.asc()),
    "priceDesc": (Product.price.desc(), Product.id.asc()),
    "stock": (Product.quantity.asc(), Product.id.asc()),
}

STOCK_STATUSES = {"low", "out", "in"}


def _unit_rows(units: list[UnitDefinition]) -> list[ProductUnit]:
    return [
        ProductUnit(level=u.level, name=u.name, multiplier=u.multiplier, price=u.price)
        for u in units
    ]


def _replace_units(product: Product, units: list[UnitDefinition]) -> None:
    product.units.clear()
    # Remove the old rows before inserting the new hierarchy
    db.session.flush()
    product.units.extend(_unit_rows(units))


def _optional_decimal(value: Any, field: str) -> Decimal | None:
    if value is None or value == "":
        return None
    return to_decimal(value, f"{field} must be a number")


def list_products(
    *,
    search: str | None = None,
    category: str | None = None,
    min_price: Any = None,
    max_price: Any = None,
    stock_status: str | None = None,
    sort: str | None = None,
    low_stock_threshold: int = 5,
) -> list[Product]:
    """
    Filtered catalog listing.

    - search / category: case-insensitive substring match
    - min_price / max_price: inclusive bounds on base unit price
    - stock_status: low (< threshold), out (<= 0), in (> 0)
    - sort: recent (default), priceAsc, priceDesc, stock
    """
    query = db.session.query(Product)

    if search:
        query = query.filter(Product.name.ilike(f"%{search}%"))
    if category:
        query = query.filter(Product.category.ilike(f"%{category}%"))

    lower = _optional_decimal(min_price, "min_price")
    upper = _optional_decimal(max_price, "max_price")
    if lower is not None:
        query = query.filter(Product.price >= lower)
    if upper is not None:
        query = query.filter(Product.price <= upper)

    if stock_status == "low":
        query = query.filter(Product.quantity < low_stock_threshold)
    elif stock_status == "out":
        query = query.filter(Product.quantity <= 0)
    elif stock_status == "in":
        query = query.filter(Product.quantity > 0)

    return query.order_by(*SORTS.get(sort or "recent", SORTS["recent"])).all()


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise ProductNotFound("Product not found")
    return product


def create_product(payload: dict) -> Product:
    """
    Create a product from a client payload.

    Required: name, category, quantity, units. The base unit's price is the
    product price; a flat ``price`` is used only when the base unit has
    none. ``quantity`` is entered in ``stock_input_unit_level`` units
    (default base) and may be zero.
    """
    missing = [f for f in ("name", "category", "quantity") if payload.get(f) in (None, "")]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    name = clean_text(payload["name"], "name", max_length=255, required=True)
    category = clean_text(payload["category"], "category", max_length=128, required=True)
    description = clean_text(payload.get("description"), "description", max_length=10_000) or ""
    image_url = clean_text(payload.get("image_url"), "image_url", max_length=512)

    units = normalize_units(payload.get("units"), fallback_base_price=payload.get("price"))
    quantity = to_base_quantity(
        payload["quantity"],
        units,
        payload.get("stock_input_unit_level", 0),
        allow_zero=True,
    )

    def _op():
        product = Product(
            name=name,
            category=category,
            description=description,
            image_url=image_url or None,
            price=units[0].price,
            quantity=round_quantity(quantity),
            units=_unit_rows(units),
        )
        db.session.add(product)
        db.session.commit()
        return product

    return run_with_retry(_op)


def update_product(product_id: int, payload: dict) -> Product:
    """
    Partial update.

    - units: replaces the hierarchy and re-derives ``price`` from the new base
      unit (falling back to a supplied ``price``)
    - price alone: written to both ``price`` and the base unit
    - quantity: REPLACES stock, entered in ``quantity_unit_level`` units, and
      must be greater than zero
    """
    def _op():
        product = get_product(product_id)

        if "name" in payload:
            product.name = clean_text(payload["name"], "name", max_length=255, required=True)
        if "category" in payload:
            product.category = clean_text(payload["category"], "category", max_length=128, required=True)
        if "description" in payload:
            product.description = clean_text(payload["description"], "description", max_length=10_000) or ""
        if "image_url" in payload:
            product.image_url = clean_text(payload["image_url"], "image_url", max_length=512) or None

        if payload.get("units") is not None:
            units = normalize_units(payload["units"], fallback_base_price=payload.get("price"))
            _replace_units(product, units)
            product.price = units[0].price
        elif payload.get("price") is not None:
            price = parse_price(payload["price"])
            product.price = price
            for unit in product.units:
                if unit.level == 0:
                    unit.price = price

        if payload.get("quantity") is not None:
            product.quantity = round_quantity(
                to_base_quantity(
                    payload["quantity"],
                    product.unit_definitions(),
                    payload.get("quantity_unit_level", 0),
                    allow_zero=False,
                )
            )

        db.session.commit()
        return product

    return run_with_retry(_op)


def delete_product(product_id: int) -> None:
    """
    Hard delete. Past sales keep their item snapshots, so no reference check.
    """
    def _op():
        product = get_product(product_id)
        db.session.delete(product)
        db.session.commit()

    run_with_retry(_op)


def adjust_stock(product_id: int, delta: Decimal) -> None:
    """
    Atomically add ``delta`` (negative to remove) base units.

    Does not check that stock stays non-negative; callers removing stock
    check sufficiency first. Does not commit.
    """
    if not increment_quantity(product_id, Decimal(delta)):
        raise ProductNotFound("Product not found")


def record_purchase(product_id: int, quantity: Any, unit_level: Any = 0) -> Product:
    """Restock: ``quantity`` in ``unit_level`` units, converted to base units."""
    if quantity is None or quantity == "":
        raise ValidationError("Quantity is required")

    def _op():
        product = get_product(product_id)
        delta = to_base_quantity(quantity, product.unit_definitions(), unit_level, allow_zero=False)
        adjust_stock(product.id, round_quantity(delta))
        db.session.commit()
        db.session.refresh(product)
        return product

    return run_with_retry(_op)


def product_base_unit(product: Product) -> UnitDefinition | None:
    return base_unit(product.unit_definitions())
