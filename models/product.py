import re

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import relationship

from models.base_model import BaseModel, Base

_WORD_RE = re.compile(r"\w+", re.UNICODE)


def tokenize(raw: str | None) -> list[str]:
    """Lowercased word tokens; shared by indexing and querying."""
    return _WORD_RE.findall((raw or "").lower())


def build_search_text(*parts: str | None) -> str:
    return " ".join(tok for part in parts for tok in tokenize(part))


class Product(BaseModel, Base):
    __tablename__ = "products"

    category_id = Column(String(36), ForeignKey("categories.id", ondelete="RESTRICT"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, nullable=False, default=0)
    sku = Column(String(64), nullable=False, unique=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    # Normalized name/description/sku tokens; fed to to_tsvector on PostgreSQL
    search_text = Column(Text, nullable=False, default="")

    category = relationship("Category", back_populates="products")

    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_products_stock_nonnegative"),
        CheckConstraint("price >= 0", name="ck_products_price_nonnegative"),
        Index("ix_products_name", "name"),
    )


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _refresh_search_text(mapper, connection, target):
    target.search_text = build_search_text(target.name, target.description, target.sku)
