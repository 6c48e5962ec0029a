from __future__ import annotations

from ..extensions import db
from ..validation import as_number
from pasal.time_utils import to_utc_z, utcnow


class Setting(db.Model):
    """
    Store-wide settings. SINGLETON: at most one row, created lazily with
    defaults on first read (settings_service.get_settings).
    """
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    store_name = db.Column(db.String(255), nullable=False)
    currency = db.Column(db.String(8), nullable=False)
    # Fraction, e.g. 0.07 for 7%
    tax_rate = db.Column(db.Numeric(6, 4), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_name": self.store_name,
            "currency": self.currency,
            "tax_rate": as_number(self.tax_rate),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
