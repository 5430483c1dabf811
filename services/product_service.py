"""
Catalog reads and writes, including ranked full-text product search.

Search ranking:
- PostgreSQL: ts_rank(to_tsvector('english', search_text), plainto_tsquery('english', q))
  with the @@ match operator
- other dialects (SQLite in development and tests): every query term must
  occur in search_text; each term scores 1, plus 1 when it also occurs in the
  product name
Results are ordered rank DESC, created_at DESC. An empty query browses all
active products with rank 0.
"""
from __future__ import annotations

import functools
import logging
import operator
from decimal import Decimal
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import and_, case, func, literal
from sqlalchemy.orm import joinedload

from models.category import Category
from models.product import Product, tokenize
from services.errors import ConflictError, NotFoundError
from utils.pagination import MAX_LIMIT, build_meta, normalize_page, offset_for

logger = logging.getLogger(__name__)


def product_view(product: Product, rank: Optional[float] = None) -> Dict[str, Any]:
    view = {
        "id": product.id,
        "category_id": product.category_id,
        "category": {"id": product.category.id, "name": product.category.name} if product.category else None,
        "name": product.name,
        "description": product.description,
        "price": Decimal(product.price),
        "stock": product.stock,
        "sku": product.sku,
        "is_active": product.is_active,
        "created_at": product.created_at,
        "updated_at": product.updated_at,
    }
    if rank is not None:
        view["rank"] = float(rank)
    return view


def _rank_and_match(session, raw_query: str):
    """Return (rank expression, match clause or None) for the bound dialect."""
    terms = tokenize(raw_query)
    if not terms:
        return literal(0.0), None

    if session.get_bind().dialect.name == "postgresql":
        tsquery = func.plainto_tsquery("english", raw_query)
        vector = func.to_tsvector("english", Product.search_text)
        return func.ts_rank(vector, tsquery), vector.op("@@")(tsquery)

    name_lower = func.lower(Product.name)
    scores = [
        case((Product.search_text.contains(t, autoescape=True), 1), else_=0)
        + case((name_lower.contains(t, autoescape=True), 1), else_=0)
        for t in terms
    ]
    rank = functools.reduce(operator.add, scores)
    match = and_(*[Product.search_text.contains(t, autoescape=True) for t in terms])
    return rank, match


class ProductService:
    def __init__(self, storage):
        self.storage = storage

    def search_products(self, query: str = "", page: int = 1, limit: int = 10,
                        category_id: Optional[str] = None, min_price=None, max_price=None
                        ) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        page, limit = normalize_page(page, limit)
        with self.storage.transaction() as session:
            rank, match = _rank_and_match(session, query or "")
            rank = rank.label("rank")

            q = session.query(Product, rank).filter(Product.is_active.is_(True))
            if match is not None:
                q = q.filter(match)
            if category_id:
                q = q.filter(Product.category_id == category_id)
            if min_price is not None:
                q = q.filter(Product.price >= Decimal(str(min_price)))
            if max_price is not None:
                q = q.filter(Product.price <= Decimal(str(max_price)))

            total = q.order_by(None).count()
            rows = (
                q.options(joinedload(Product.category))
                .order_by(rank.desc(), Product.created_at.desc())
                .offset(offset_for(page, limit))
                .limit(limit)
                .all()
            )
            results = [product_view(product, product_rank) for product, product_rank in rows]
            return results, build_meta(page, limit, total)

    def list_products(self, page: int = 1, limit: int = 10,
                      category_id: Optional[str] = None) -> Tuple[List[Dict[str, Any]], Dict[str, int]]:
        page, limit = normalize_page(page, limit, max_limit=MAX_LIMIT)
        with self.storage.transaction() as session:
            q = session.query(Product).filter(Product.is_active.is_(True))
            if category_id:
                q = q.filter(Product.category_id == category_id)
            total = q.count()
            rows = (
                q.options(joinedload(Product.category))
                .order_by(Product.created_at.desc())
                .offset(offset_for(page, limit))
                .limit(limit)
                .all()
            )
            return [product_view(p) for p in rows], build_meta(page, limit, total)

    def get_product(self, product_id: str) -> Dict[str, Any]:
        with self.storage.transaction() as session:
            product = (
                session.query(Product)
                .options(joinedload(Product.category))
                .filter(Product.id == product_id, Product.is_active.is_(True))
                .first()
            )
            if not product:
                raise NotFoundError("product not found")
            return product_view(product)

    def _check_category(self, session, category_id: str) -> Category:
        category = session.get(Category, category_id)
        if not category or category.is_deleted:
            raise NotFoundError("category not found")
        return category

    def create_product(self, data: Dict[str, Any]) -> Dict[str, Any]:
        with self.storage.transaction() as session:
            self._check_category(session, data["category_id"])
            if session.query(Product).filter(Product.sku == data["sku"]).first():
                raise ConflictError("A product with this SKU already exists.")
            product = Product(
                category_id=data["category_id"],
                name=data["name"],
                description=data.get("description"),
                price=data["price"],
                stock=data.get("stock", 0),
                sku=data["sku"],
                is_active=data.get("is_active", True),
            )
            session.add(product)
            session.flush()
            session.refresh(product)
            logger.info("Created product %s (%s)", product.id, product.sku)
            return product_view(product)

    def update_product(self, product_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Partial update; stock changes go through the inventory ledger, not here."""
        with self.storage.transaction() as session:
            product = (
                session.query(Product)
                .filter(Product.id == product_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
            if not product:
                raise NotFoundError("product not found")
            if "category_id" in data:
                self._check_category(session, data["category_id"])
            if "sku" in data and data["sku"] != product.sku:
                if session.query(Product).filter(Product.sku == data["sku"]).first():
                    raise ConflictError("A product with this SKU already exists.")
            for field in ["category_id", "name", "description", "price", "sku", "is_active"]:
                if field in data:
                    setattr(product, field, data[field])
            session.flush()
            session.refresh(product)
            return product_view(product)

    def delete_product(self, product_id: str) -> None:
        """Deactivate a product; order lines and ledger rows keep referencing it."""
        with self.storage.transaction() as session:
            product = (
                session.query(Product)
                .filter(Product.id == product_id)
                .populate_existing()
                .with_for_update()
                .first()
            )
            if not product:
                raise NotFoundError("product not found")
            product.is_active = False
            logger.info("Deactivated product %s (%s)", product.id, product.sku)

    def update_category(self, category_id: str, data: Dict[str, Any]) -> Category:
        with self.storage.transaction() as session:
            category = self._check_category(session, category_id)
            if "name" in data:
                name = data["name"].strip()
                taken = session.query(
                    session.query(Category)
                    .filter(
                        func.lower(Category.name) == name.lower(),
                        Category.deleted_at.is_(None),
                        Category.id != category.id,
                    )
                    .exists()
                ).scalar()
                if taken:
                    raise ConflictError("Category name already exists.")
                category.name = name
            for field in ["description", "is_active"]:
                if field in data:
                    setattr(category, field, data[field])
            session.flush()
            session.refresh(category)
            return category
