# Overview: Stock ledger adapter; the only code path that changes Product.current_stock.

"""
Stock Invariants (authoritative)

- Stock changes are applied as one UPDATE ... SET current_stock = current_stock + :delta,
  never as read-then-write in Python. Concurrent sales against the same
  product cannot lose each other's updates.
- A negative delta carries the condition `current_stock + delta >= 0` in the
  same statement. If another request consumed the stock after the caller's
  availability check, zero rows match and InsufficientStockError is raised;
  the surrounding transaction is rolled back by run_with_retry.
- Positive deltas (reversals) are unconditional.
- Every adjustment bumps Product.updated_at.
- This module does not commit. Callers own the transaction.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.orm.util import identity_key

from ..extensions import db
from ..models import Product
from ..validation import InsufficientStockError, NotFoundError
from shoptally.time_utils import utcnow


def adjust(product_id: int, delta: int) -> None:
    """Atomically add `delta` (signed) to a product's stock."""
    if delta == 0:
        return

    stmt = (
        update(Product)
        .where(Product.id == product_id)
        .values(current_stock=Product.current_stock + delta, updated_at=utcnow())
    )
    if delta < 0:
        stmt = stmt.where(Product.current_stock + delta >= 0)

    result = db.session.execute(stmt.execution_options(synchronize_session=False))

    # Loaded Product objects must re-read stock from the row
    cached = db.session.identity_map.get(identity_key(Product, product_id))
    if cached is not None:
        db.session.expire(cached, ["current_stock", "updated_at"])

    if result.rowcount == 0:
        product = db.session.get(Product, product_id)
        if product is None:
            raise NotFoundError(f"Product with ID {product_id} not found")
        current_app.logger.warning(
            "Rejected stock adjustment product_id=%s delta=%s on_hand=%s",
            product_id, delta, product.current_stock,
        )
        raise InsufficientStockError(
            f"Insufficient stock for product {product.name}. "
            f"Available: {product.current_stock}, Requested: {-delta}",
            details={
                "product_id": product_id,
                "requested_quantity": -delta,
                "on_hand": product.current_stock,
            },
        )

    current_app.logger.info("Stock adjusted product_id=%s delta=%+d", product_id, delta)


def apply_deltas(deltas: dict[int, int]) -> None:
    """Apply several product deltas in ascending product id order (stable lock order)."""
    for product_id in sorted(deltas):
        adjust(product_id, deltas[product_id])


def get_stock(product_id: int) -> int:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product with ID {product_id} not found")
    return product.current_stock
