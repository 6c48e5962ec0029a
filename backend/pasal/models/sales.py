from __future__ import annotations

from ..extensions import db
from ..validation import as_number
from pasal.time_utils import to_utc_z, utcnow


SALE_STATUS_PAID = "paid"
SALE_STATUS_PARTIAL = "partial"
SALE_STATUS_UNPAID = "unpaid"


class Sale(db.Model):
    """
    Completed checkout.

    IMMUTABLE after creation except ``paid_amount``, ``due_amount`` and
    ``status``, which the receivables ledger moves as payments are applied.
    Items are snapshots and never follow later product edits.
    """
    __tablename__ = "sales"
    __table_args__ = (
        # Open-invoice lookups walk a customer's sales oldest first
        db.Index("ix_sales_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    discount_note = db.Column(db.String(255), nullable=True)
    tax = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)
    currency = db.Column(db.String(8), nullable=False, default="USD")

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)
    customer_name = db.Column(db.String(255), nullable=True)

    payment_method = db.Column(db.String(32), nullable=False, default="cash")
    paid_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    due_amount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_PAID, index=True)

    notes = db.Column(db.Text, nullable=True)
    due_note = db.Column(db.String(255), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "SaleItem",
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
        back_populates="sale",
    )
    customer = db.relationship("Customer", backref=db.backref("sales", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "items": [item.to_dict() for item in self.items],
            "subtotal": as_number(self.subtotal),
            "discount_amount": as_number(self.discount_amount),
            "discount_note": self.discount_note,
            "tax": as_number(self.tax),
            "total": as_number(self.total),
            "currency": self.currency,
            "customer_id": self.customer_id,
            "customer_name": self.customer_name,
            "payment_method": self.payment_method,
            "paid_amount": as_number(self.paid_amount),
            "due_amount": as_number(self.due_amount),
            "status": self.status,
            "notes": self.notes,
            "due_note": self.due_note,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class SaleItem(db.Model):
    """Frozen line snapshot: product name, unit and prices as sold."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    # No FK: the product may be deleted later, the snapshot stays
    product_id = db.Column(db.Integer, nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)

    quantity = db.Column(db.Numeric(14, 4), nullable=False)       # base units
    unit_quantity = db.Column(db.Numeric(14, 4), nullable=False)  # in the selected unit
    unit_level = db.Column(db.Integer, nullable=False, default=0)
    unit_label = db.Column(db.String(64), nullable=False)
    unit_multiplier = db.Column(db.Numeric(14, 4), nullable=False)
    base_unit_label = db.Column(db.String(64), nullable=False)

    price = db.Column(db.Numeric(14, 4), nullable=False)       # per base unit
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)  # per selected unit
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="items")

    def to_dict(self) -> dict:
        return {
            "product_id": self.product_id,
            "name": self.name,
            "quantity": as_number(self.quantity),
            "unit_quantity": as_number(self.unit_quantity),
            "unit_level": self.unit_level,
            "unit_label": self.unit_label,
            "unit_multiplier": as_number(self.unit_multiplier),
            "base_unit_label": self.base_unit_label,
            "price": as_number(self.price),
            "unit_price": as_number(self.unit_price),
            "subtotal": as_number(self.subtotal),
        }
