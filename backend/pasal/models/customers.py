from __future__ import annotations

from ..extensions import db
from ..validation import as_number
from pasal.time_utils import to_utc_z, utcnow


PAYMENT_TYPE_CHARGE = "charge"
PAYMENT_TYPE_PAYMENT = "payment"


class Customer(db.Model):
    """
    Customer account for credit sales.

    DENORMALIZED: ``balance`` is the running total of ``due_amount`` across
    the customer's sales. It is maintained incrementally by checkout and the
    receivables ledger, never recomputed on read.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    address = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    balance = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    # Soft delete keeps historical sales and ledger entries attached
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "notes": self.notes,
            "balance": as_number(self.balance),
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Payment(db.Model):
    """
    Append-only receivables ledger entry.

    TYPES:
    - charge: a sale left ``amount`` unpaid on the customer's account
    - payment: money received against the account

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.Index("ix_payments_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    amount = db.Column(db.Numeric(12, 2), nullable=False)
    method = db.Column(db.String(32), nullable=False, default="cash")
    type = db.Column(db.String(16), nullable=False, index=True)  # charge, payment
    note = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    customer = db.relationship("Customer", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "sale_id": self.sale_id,
            "amount": as_number(self.amount),
            "method": self.method,
            "type": self.type,
            "note": self.note,
            "created_at": to_utc_z(self.created_at),
        }
