from __future__ import annotations

from ..extensions import db
from ..validation import as_number
from ..services.unit_service import UnitDefinition, base_unit_name, stock_breakdown
from pasal.time_utils import to_utc_z, utcnow


class Product(db.Model):
    """
    Catalog entry with a one-to-three level unit hierarchy.

    STOCK: ``quantity`` is always expressed in base units (level 0) and is the
    single source of truth for stock. Counts in larger units are derived by
    dividing by the unit multiplier (see services.unit_service).

    PRICE: ``price`` mirrors the base unit's price. Every write path that
    touches one must write the other (products_service).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_category", "category"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(128), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    image_url = db.Column(db.String(512), nullable=True)

    # Price per base unit
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Stock on hand in base units
    quantity = db.Column(db.Numeric(14, 4), nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    units = db.relationship(
        "ProductUnit",
        order_by="ProductUnit.multiplier",
        cascade="all, delete-orphan",
        lazy="selectin",
        back_populates="product",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} quantity={self.quantity}>"

    def unit_definitions(self) -> list[UnitDefinition]:
        return [UnitDefinition.from_model(unit) for unit in self.units]

    def to_dict(self) -> dict:
        units = self.unit_definitions()
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "image_url": self.image_url,
            "price": as_number(self.price),
            "quantity": as_number(self.quantity),
            "units": [unit.to_dict() for unit in units],
            "base_unit_name": base_unit_name(units),
            "stock_breakdown": [
                {"name": name, "quantity": as_number(count)}
                for name, count in stock_breakdown(self.quantity, units)
            ],
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class ProductUnit(db.Model):
    """
    One level of a product's unit hierarchy.

    ``multiplier`` is how many base units one of this unit holds; level 0 is
    always 1. ``price`` is optional above level 0 (derived as base price x
    multiplier when absent).
    """
    __tablename__ = "product_units"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)

    level = db.Column(db.Integer, nullable=False)
    name = db.Column(db.String(64), nullable=False)
    multiplier = db.Column(db.Numeric(14, 4), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=True)

    product = db.relationship("Product", back_populates="units")

    def __repr__(self) -> str:
        return f"<ProductUnit product_id={self.product_id} level={self.level} name={self.name!r}>"
