# Overview: Service-layer operations for the singleton store settings record.

from __future__ import annotations

from decimal import Decimal

from flask import current_app, has_app_context

from ..extensions import db
from ..models import Setting
from ..validation import clean_text, parse_rate
from .concurrency import run_with_retry


def _defaults() -> dict:
    config = current_app.config if has_app_context() else {}
    return {
        "store_name": config.get("DEFAULT_STORE_NAME", "My Local Grocery"),
        "currency": config.get("DEFAULT_CURRENCY", "USD"),
        "tax_rate": Decimal(str(config.get("DEFAULT_TAX_RATE", "0.07"))),
    }


def get_settings() -> Setting:
    """Return the settings row, creating it with defaults on first read."""
    setting = db.session.query(Setting).order_by(Setting.id.asc()).first()
    if setting:
        return setting

    def _op():
        created = Setting(**_defaults())
        db.session.add(created)
        db.session.commit()
        return created

    return run_with_retry(_op)


def update_settings(payload: dict) -> Setting:
    setting = get_settings()

    def _op():
        if "store_name" in payload:
            setting.store_name = clean_text(payload["store_name"], "store_name", max_length=255, required=True)
        if "currency" in payload:
            setting.currency = clean_text(payload["currency"], "currency", max_length=8, required=True).upper()
        if "tax_rate" in payload:
            setting.tax_rate = parse_rate(payload["tax_rate"])
        db.session.commit()
        return setting

    return run_with_retry(_op)
