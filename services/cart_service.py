"""
Cart mutations with stock-aware validation.

Each command runs in one unit of work that locks the user's cart row first
and the product row second, so two requests adding the same product cannot
both pass the stock check.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List

from marshmallow import ValidationError
from sqlalchemy.orm import joinedload

from models.cart import Cart, CartItem
from models.product import Product
from services import stock
from services.errors import NotFoundError, NotOwnerError

logger = logging.getLogger(__name__)


def _require_positive(quantity: int) -> None:
    # Mirrors the request schema; guards direct callers
    if quantity is None or int(quantity) < 1:
        raise ValidationError({"quantity": ["Must be greater than or equal to 1."]})


def lock_cart(session, user_id: str) -> Cart:
    cart = (
        session.query(Cart)
        .filter(Cart.user_id == user_id)
        .populate_existing()
        .with_for_update()
        .first()
    )
    if not cart:
        raise NotFoundError("cart not found")
    return cart


def load_active_items(session, cart_id: str) -> List[CartItem]:
    return (
        session.query(CartItem)
        .options(joinedload(CartItem.product).joinedload(Product.category))
        .filter(CartItem.cart_id == cart_id, CartItem.deleted_at.is_(None))
        .order_by(CartItem.created_at)
        .populate_existing()
        .all()
    )


def cart_view(cart: Cart, items: List[CartItem]) -> Dict[str, Any]:
    lines = []
    total = Decimal("0.00")
    for item in items:
        product = item.product
        subtotal = Decimal(product.price) * item.quantity
        total += subtotal
        lines.append(
            {
                "id": item.id,
                "product_id": product.id,
                "quantity": item.quantity,
                "price": Decimal(product.price),
                "subtotal": subtotal,
                "product": {
                    "id": product.id,
                    "name": product.name,
                    "sku": product.sku,
                    "price": Decimal(product.price),
                    "stock": product.stock,
                    "category": {"id": product.category.id, "name": product.category.name}
                    if product.category else None,
                },
            }
        )
    return {"id": cart.id, "user_id": cart.user_id, "items": lines, "total": total}


class CartService:
    def __init__(self, storage):
        self.storage = storage

    def _owned_item(self, session, user_id: str, item_id: str) -> tuple[Cart, CartItem]:
        cart = lock_cart(session, user_id)
        item = (
            session.query(CartItem)
            .filter(CartItem.id == item_id, CartItem.deleted_at.is_(None))
            .populate_existing()
            .with_for_update()
            .first()
        )
        if not item:
            raise NotFoundError("cart item not found")
        if item.cart_id != cart.id:
            raise NotOwnerError("cart item not found")
        return cart, item

    def get_cart(self, user_id: str) -> Dict[str, Any]:
        with self.storage.transaction() as session:
            cart = session.query(Cart).filter(Cart.user_id == user_id).first()
            if not cart:
                raise NotFoundError("cart not found")
            return cart_view(cart, load_active_items(session, cart.id))

    def add_item(self, user_id: str, product_id: str, quantity: int) -> Dict[str, Any]:
        _require_positive(quantity)
        with self.storage.transaction() as session:
            cart = lock_cart(session, user_id)
            product = stock.lock_product(session, product_id)

            existing = (
                session.query(CartItem)
                .filter(
                    CartItem.cart_id == cart.id,
                    CartItem.product_id == product.id,
                    CartItem.deleted_at.is_(None),
                )
                .populate_existing()
                .first()
            )
            if existing:
                stock.ensure_available(product, quantity, already_held=existing.quantity)
                existing.quantity += quantity
            else:
                stock.ensure_available(product, quantity)
                session.add(CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity))
            session.flush()

            logger.info("Added %s x %s to cart %s", quantity, product.id, cart.id)
            return cart_view(cart, load_active_items(session, cart.id))

    def update_item(self, user_id: str, item_id: str, quantity: int) -> Dict[str, Any]:
        _require_positive(quantity)
        with self.storage.transaction() as session:
            cart, item = self._owned_item(session, user_id, item_id)
            product = stock.lock_product(session, item.product_id)
            stock.ensure_available(product, quantity)
            item.quantity = quantity
            session.flush()

            logger.info("Set cart item %s quantity to %s", item.id, quantity)
            return cart_view(cart, load_active_items(session, cart.id))

    def remove_item(self, user_id: str, item_id: str) -> None:
        with self.storage.transaction() as session:
            cart, item = self._owned_item(session, user_id, item_id)
            item.mark_deleted()
            logger.info("Removed cart item %s from cart %s", item.id, cart.id)
