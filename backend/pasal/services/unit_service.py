# Overview: Unit-of-measure rules for products; pure functions, no database access.

"""
Unit Model

A product is sold in up to three units, e.g. piece -> pack -> case. Each unit
carries a multiplier: how many base units (level 0) one of it holds.

INVARIANTS (enforced by normalize_units):
- 1 to 3 units
- level 0 (base) has multiplier 1 and a price
- sorted by multiplier, levels are 0, 1, 2 and multipliers strictly increase
- prices, when present, are >= 0

Stock is always stored in base units; everything here converts to or from them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Sequence

from ..validation import (
    MAX_QUANTITY,
    QUANTITY_STEP,
    InvalidQuantity,
    MissingBasePrice,
    ValidationError,
    parse_price,
    round_money,
    to_decimal,
)


MAX_UNIT_LEVELS = 3
DEFAULT_UNIT_NAME = "unit"

# Keys accepted for a unit's multiplier and price, in priority order
MULTIPLIER_KEYS = ("multiplier", "size", "ratio")
PRICE_KEYS = ("price", "unit_price")
BASE_PRICE_KEYS = ("base_price", "cost")


@dataclass(frozen=True)
class UnitDefinition:
    level: int
    name: str
    multiplier: Decimal
    price: Decimal | None = None

    @classmethod
    def from_model(cls, unit) -> "UnitDefinition":
        return cls(
            level=unit.level,
            name=unit.name,
            multiplier=Decimal(unit.multiplier),
            price=Decimal(unit.price) if unit.price is not None else None,
        )

    def to_dict(self) -> dict:
        return {
            "level": self.level,
            "name": self.name,
            "multiplier": float(self.multiplier),
            "price": float(self.price) if self.price is not None else None,
        }


DEFAULT_UNIT = UnitDefinition(level=0, name=DEFAULT_UNIT_NAME, multiplier=Decimal(1))


def _first_present(raw: dict, keys: Iterable[str]) -> Any:
    for key in keys:
        value = raw.get(key)
        if value is not None and value != "":
            return value
    return None


def _decode_units(raw_units: Any) -> list:
    if raw_units is None:
        raise ValidationError("Units are required")
    units = raw_units
    if isinstance(raw_units, str):
        try:
            units = json.loads(raw_units)
        except ValueError:
            raise ValidationError("Units must be valid JSON")
    if not isinstance(units, list) or not units:
        raise ValidationError("At least one unit definition is required")
    if len(units) > MAX_UNIT_LEVELS:
        raise ValidationError("A maximum of three units is supported")
    return units


def normalize_units(raw_units: Any, *, fallback_base_price: Any = None) -> list[UnitDefinition]:
    """
    Validate a client unit payload and return it sorted by multiplier with
    levels renumbered 0..n-1.

    ``raw_units`` is a list of dicts or its JSON encoding. The first entry is
    the base unit; its multiplier defaults to 1. When the base unit carries
    no price, ``fallback_base_price`` (the flat product price) is used, and if
    that is absent too MissingBasePrice is raised.
    """
    units = _decode_units(raw_units)

    parsed: list[tuple[str, Decimal, Decimal | None]] = []
    for index, raw in enumerate(units):
        if not isinstance(raw, dict):
            raise ValidationError("Each unit requires a name")
        name = str(raw.get("name") or "").strip()
        if not name:
            raise ValidationError("Each unit requires a name")
        if len(name) > 64:
            raise ValidationError("Unit names cannot exceed 64 characters")

        raw_multiplier = _first_present(raw, MULTIPLIER_KEYS)
        if raw_multiplier is None and index == 0:
            raw_multiplier = 1
        multiplier = to_decimal(raw_multiplier, "Unit multipliers must be numeric and at least 1")
        if multiplier < 1:
            raise ValidationError("Unit multipliers must be numeric and at least 1")
        if multiplier > MAX_QUANTITY:
            raise ValidationError(f"Unit multipliers cannot exceed {MAX_QUANTITY}")

        price_keys = PRICE_KEYS + BASE_PRICE_KEYS if index == 0 else PRICE_KEYS
        raw_price = _first_present(raw, price_keys)
        price = None
        if raw_price is not None:
            try:
                price = parse_price(raw_price)
            except ValidationError:
                raise ValidationError("Unit prices must be numeric and non-negative")

        parsed.append((name, multiplier, price))

    parsed.sort(key=lambda entry: entry[1])

    if parsed[0][1] != 1:
        raise ValidationError("Base unit must have multiplier 1")
    for previous, current in zip(parsed, parsed[1:]):
        if current[1] <= previous[1]:
            raise ValidationError(
                "Each higher unit must convert to more base units than the previous level"
            )

    name, multiplier, base_price = parsed[0]
    if base_price is None:
        if fallback_base_price is None or fallback_base_price == "":
            raise MissingBasePrice("Base unit price is required")
        base_price = parse_price(fallback_base_price)
    parsed[0] = (name, multiplier, base_price)

    return [
        UnitDefinition(level=level, name=name, multiplier=multiplier, price=price)
        for level, (name, multiplier, price) in enumerate(parsed)
    ]


def _coerce_level(level: Any) -> int | None:
    if level is None:
        return 0
    if isinstance(level, bool):
        return None
    try:
        numeric = Decimal(str(level).strip())
    except ArithmeticError:
        return None
    if not numeric.is_finite() or numeric != numeric.to_integral_value():
        return None
    return int(numeric)


def sorted_units(units: Sequence[UnitDefinition]) -> list[UnitDefinition]:
    return sorted(units, key=lambda unit: unit.multiplier)


def resolve_unit(units: Sequence[UnitDefinition], level: Any = 0) -> UnitDefinition:
    """
    Pick the unit for ``level``.

    Fallback order: exact level match, then position in the
    multiplier-sorted list, then the base unit, then a synthetic
    ``unit`` with multiplier 1. Sale items may name a level that a later
    product edit removed, so this never fails.
    """
    ordered = sorted_units(units)
    if not ordered:
        return DEFAULT_UNIT

    numeric_level = _coerce_level(level)
    if numeric_level is not None:
        for unit in ordered:
            if unit.level == numeric_level:
                return unit
        if 0 <= numeric_level < len(ordered):
            return ordered[numeric_level]
    return ordered[0]


def parse_quantity(raw_quantity: Any, *, allow_zero: bool = True) -> Decimal:
    """
    Parse a client quantity. At most four decimal places, the precision
    stock is stored at, so a positive quantity never rounds to zero.
    """
    message = "Quantity must be non-negative" if allow_zero else "Quantity must be greater than zero"
    quantity = to_decimal(raw_quantity, message, InvalidQuantity)
    if quantity < 0 or (not allow_zero and quantity == 0):
        raise InvalidQuantity(message)
    if quantity > MAX_QUANTITY:
        raise InvalidQuantity(f"Quantity cannot exceed {MAX_QUANTITY}")
    if quantity != quantity.quantize(QUANTITY_STEP):
        raise InvalidQuantity("Quantity supports at most 4 decimal places")
    return quantity


def to_base_quantity(
    raw_quantity: Any,
    units: Sequence[UnitDefinition],
    level: Any = 0,
    *,
    allow_zero: bool = True,
) -> Decimal:
    """Convert a quantity entered in ``level`` units into base units."""
    quantity = parse_quantity(raw_quantity, allow_zero=allow_zero)
    unit = resolve_unit(units, level)
    base_quantity = quantity * unit.multiplier
    if base_quantity > MAX_QUANTITY:
        raise InvalidQuantity(f"Quantity cannot exceed {MAX_QUANTITY} base units")
    return base_quantity


def derived_unit_price(unit: UnitDefinition, base_price: Decimal) -> Decimal:
    """Explicit unit price when set, else base price scaled by the multiplier."""
    if unit.price is not None:
        return Decimal(unit.price)
    return round_money(Decimal(base_price) * unit.multiplier)


def base_unit(units: Sequence[UnitDefinition]) -> UnitDefinition | None:
    for unit in units:
        if unit.level == 0:
            return unit
    ordered = sorted_units(units)
    return ordered[0] if ordered else None


def base_unit_name(units: Sequence[UnitDefinition]) -> str:
    ordered = sorted_units(units)
    return ordered[0].name if ordered else DEFAULT_UNIT_NAME


def stock_breakdown(quantity: Decimal, units: Sequence[UnitDefinition]) -> list[tuple[str, Decimal]]:
    """
    Express base-unit stock in the largest denominations first.

    E.g. 53 pieces with pack=10 and case=24 -> [("case", 2), ("pc", 5)].
    The smallest unit is always listed and absorbs any remainder; larger
    units are listed only when their count is positive.
    """
    remaining = Decimal(quantity)
    descending = sorted(units, key=lambda unit: unit.multiplier, reverse=True)
    if not descending:
        return [(DEFAULT_UNIT_NAME, remaining)]

    breakdown = []
    for index, unit in enumerate(descending):
        is_smallest = index == len(descending) - 1
        count = remaining if is_smallest else remaining // unit.multiplier
        remaining -= count * unit.multiplier
        if count > 0 or is_smallest:
            breakdown.append((unit.name, count))
    return breakdown
