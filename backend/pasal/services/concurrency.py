# Overview: Service-layer helpers for row locking, retries and atomic stock updates.

from __future__ import annotations

import time
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Product


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates, so a failed operation leaves nothing behind.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def increment_quantity(product_id: int, delta: Decimal, *, minimum: Decimal | None = None) -> bool:
    """
    Atomically add ``delta`` base units to a product's stock.

    With ``minimum`` set, the row only changes when the stored quantity is at
    least that value (decrement-if-sufficient). Returns False when no row
    matched. Does not commit.
    """
    stmt = update(Product).where(Product.id == product_id)
    if minimum is not None:
        stmt = stmt.where(Product.quantity >= minimum)
    stmt = stmt.values(
        quantity=Product.quantity + delta,
        version_id=Product.version_id + 1,
    ).execution_options(synchronize_session=False)
    result = db.session.execute(stmt)

    # Loaded instance now holds stale stock and version
    instance = db.session.identity_map.get(db.session.identity_key(Product, product_id))
    if instance is not None:
        db.session.expire(instance, ["quantity", "version_id"])
    return result.rowcount > 0
