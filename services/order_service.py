"""
Order placement: turns the user's cart into an order in one unit of work.

Inside a single transaction the cart and every product on it are locked,
stock is re-validated line by line, decremented through the stock ledger,
the order and its price snapshots are written and the cart is cleared.
Any failure rolls the whole thing back; there are no partial orders.
"""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, List, Tuple

from sqlalchemy.orm import selectinload

from models.base_model import utcnow
from models.cart import CartItem
from models.inventory_transaction import InventoryReason
from models.order import Order, OrderItem
from services import stock
from services.cart_service import load_active_items, lock_cart
from services.errors import CartEmptyError, NotFoundError
from utils.pagination import MAX_LIMIT, build_meta, normalize_page, offset_for

logger = logging.getLogger(__name__)


def order_view(order: Order) -> Dict[str, Any]:
    return {
        "id": order.id,
        "user_id": order.user_id,
        "total": Decimal(order.total),
        "created_at": order.created_at,
        "items": [
            {
                "id": item.id,
                "product_id": item.product_id,
                "product_name": item.product_name,
                "quantity": item.quantity,
                "price": Decimal(item.price),
                "subtotal": Decimal(item.price) * item.quantity,
            }
            for item in order.items
        ],
    }


class OrderService:
    def __init__(self, storage):
        self.storage = storage

    def place_order(self, user_id: str) -> Dict[str, Any]:
        with self.storage.transaction() as session:
            cart = lock_cart(session, user_id)
            lines = load_active_items(session, cart.id)
            if not lines:
                raise CartEmptyError()

            # Lock every product on the cart (id order) and re-read its stock
            products = {p.id: p for p in stock.lock_products(session, [line.product_id for line in lines])}

            for line in lines:
                product = products.get(line.product_id)
                if product is None or not product.is_active:
                    raise NotFoundError("product not found", details={"product_id": line.product_id})
                stock.ensure_available(product, line.quantity)

            order = Order(user_id=user_id, total=Decimal("0.00"))
            session.add(order)
            session.flush()

            total = Decimal("0.00")
            for line in lines:
                product = products[line.product_id]
                price = Decimal(product.price)
                stock.apply_delta(
                    session, product, -line.quantity, InventoryReason.SALE,
                    note=f"order {order.id}", order_id=order.id,
                )
                order.items.append(
                    OrderItem(
                        product_id=product.id,
                        product_name=product.name,
                        quantity=line.quantity,
                        price=price,
                    )
                )
                total += price * line.quantity
            order.total = total

            # Clear the cart; the cart row itself stays
            (
                session.query(CartItem)
                .filter(CartItem.cart_id == cart.id, CartItem.deleted_at.is_(None))
                .update({CartItem.deleted_at: utcnow()}, synchronize_session="fetch")
            )
            session.flush()

            logger.info("Placed order %s for user %s (%s lines, total %s)", order.id, user_id, len(lines), total)
            return order_view(order)

    def get_orders(self, user_id: str, page: int = 1, limit: int = 10) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        page, limit = normalize_page(page, limit, max_limit=MAX_LIMIT)
        with self.storage.transaction() as session:
            query = session.query(Order).filter(Order.user_id == user_id)
            total = query.count()
            rows = (
                query.options(selectinload(Order.items))
                .order_by(Order.created_at.desc())
                .offset(offset_for(page, limit))
                .limit(limit)
                .all()
            )
            return [order_view(o) for o in rows], build_meta(page, limit, total)

    def get_order(self, user_id: str, order_id: str) -> Dict[str, Any]:
        with self.storage.transaction() as session:
            order = (
                session.query(Order)
                .options(selectinload(Order.items))
                .filter(Order.id == order_id, Order.user_id == user_id)
                .first()
            )
            if not order:
                raise NotFoundError("order not found")
            return order_view(order)
