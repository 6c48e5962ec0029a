# Overview: Service-layer reporting; dashboard metrics and sales export.

from __future__ import annotations

import csv
import io
import json
from decimal import Decimal

from ..extensions import db
from ..models import Customer, Product, Sale, SaleItem
from pasal.time_utils import to_utc_z


TOP_SELLING_LIMIT = 5

SALES_CSV_FIELDS = [
    "saleId",
    "date",
    "product",
    "unitQuantity",
    "unitLabel",
    "baseQuantity",
    "baseUnitLabel",
    "unitLevel",
    "unitMultiplier",
    "pricePerBaseUnit",
    "unitPrice",
    "subtotal",
    "tax",
    "total",
    "currency",
]


def _decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


def inventory_summary(*, low_stock_threshold: int = 5) -> dict:
    """
    Dashboard numbers.

    Inventory value is price x quantity per product (base units). Top
    selling ranks products by base quantity sold across all sales.
    """
    products = db.session.query(Product).order_by(Product.name.asc()).all()
    total_inventory_value = sum(
        (Decimal(p.price) * Decimal(p.quantity) for p in products), Decimal("0")
    )
    low_stock = [p for p in products if p.quantity < low_stock_threshold]

    total_sales, sale_count = db.session.query(
        db.func.coalesce(db.func.sum(Sale.total), 0),
        db.func.count(Sale.id),
    ).one()

    quantity_sold = db.func.sum(SaleItem.quantity).label("quantity_sold")
    top_rows = (
        db.session.query(
            SaleItem.product_id,
            db.func.max(SaleItem.name).label("name"),
            db.func.max(SaleItem.base_unit_label).label("base_unit_label"),
            quantity_sold,
        )
        .group_by(SaleItem.product_id)
        .order_by(quantity_sold.desc())
        .limit(TOP_SELLING_LIMIT)
        .all()
    )

    total_receivables = (
        db.session.query(db.func.coalesce(db.func.sum(Customer.balance), 0))
        .filter(Customer.is_active.is_(True))
        .scalar()
    )

    return {
        "total_products": len(products),
        "total_inventory_value": float(total_inventory_value.quantize(Decimal("0.01"))),
        "low_stock": [p.to_dict() for p in low_stock],
        "total_sales": float(_decimal(total_sales)),
        "sale_count": sale_count,
        "top_selling": [
            {
                "product_id": row.product_id,
                "name": row.name,
                "base_unit_label": row.base_unit_label,
                "quantity_sold": float(_decimal(row.quantity_sold)),
            }
            for row in top_rows
        ],
        "total_receivables": float(_decimal(total_receivables)),
    }


def list_sales() -> list[Sale]:
    return db.session.query(Sale).order_by(Sale.created_at.desc(), Sale.id.desc()).all()


def sales_csv(sales: list[Sale]) -> str:
    """One row per sale item, with the sale's tax and total repeated."""
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=SALES_CSV_FIELDS, lineterminator="\n")
    writer.writeheader()
    for sale in sales:
        for item in sale.items:
            writer.writerow({
                "saleId": sale.id,
                "date": to_utc_z(sale.created_at),
                "product": item.name,
                "unitQuantity": item.unit_quantity,
                "unitLabel": item.unit_label,
                "baseQuantity": item.quantity,
                "baseUnitLabel": item.base_unit_label,
                "unitLevel": item.unit_level,
                "unitMultiplier": item.unit_multiplier,
                "pricePerBaseUnit": item.price,
                "unitPrice": item.unit_price,
                "subtotal": item.subtotal,
                "tax": sale.tax,
                "total": sale.total,
                "currency": sale.currency,
            })
    return buffer.getvalue()


def sales_json(sales: list[Sale]) -> str:
    return json.dumps([sale.to_dict() for sale in sales], indent=2)
