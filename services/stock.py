"""
Stock ledger accessor.

Every read that feeds a stock decision and every stock write goes through
here, inside the caller's unit of work. Reads take a row lock
(SELECT ... FOR UPDATE) so "read stock, validate, write stock" cannot
interleave with another writer on the same product.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from models.inventory_transaction import InventoryReason, InventoryTransaction
from models.product import Product
from services.errors import InsufficientStockError, NotFoundError


def lock_product(session, product_id: str, active_only: bool = True) -> Product:
    query = session.query(Product).filter(Product.id == product_id)
    if active_only:
        query = query.filter(Product.is_active.is_(True))
    product = query.populate_existing().with_for_update().first()
    if not product:
        raise NotFoundError("product not found")
    return product


def lock_products(session, product_ids: Iterable[str]) -> List[Product]:
    """Lock several products in ascending id order so concurrent lockers cannot deadlock."""
    ids = sorted(set(product_ids))
    if not ids:
        return []
    return (
        session.query(Product)
        .filter(Product.id.in_(ids))
        .order_by(Product.id)
        .populate_existing()
        .with_for_update()
        .all()
    )


def ensure_available(product: Product, quantity: int, already_held: int = 0) -> None:
    """Raise InsufficientStockError unless already_held + quantity fits in current stock."""
    requested = already_held + quantity
    if requested > product.stock:
        raise InsufficientStockError(product.id, product.name, product.stock, requested)


def apply_delta(session, product: Product, delta: int, reason: InventoryReason,
                note: Optional[str] = None, order_id: Optional[str] = None) -> InventoryTransaction:
    """Change stock by delta on a locked product and record the ledger row."""
    new_qty = (product.stock or 0) + delta
    if new_qty < 0:
        raise InsufficientStockError(product.id, product.name, product.stock, -delta)
    product.stock = new_qty
    tx = InventoryTransaction(
        product_id=product.id,
        delta_quantity=delta,
        reason=reason,
        note=note,
        resulting_quantity=new_qty,
        order_id=order_id,
    )
    session.add(product)
    session.add(tx)
    return tx
