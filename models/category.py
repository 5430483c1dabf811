from sqlalchemy.orm import relationship
from sqlalchemy import Boolean, Column, String, Text, Index, text

from models.base_model import BaseModel, Base, SoftDeleteMixin


class Category(SoftDeleteMixin, BaseModel, Base):
    __tablename__ = "categories"

    name = Column(String(64), nullable=False)
    description = Column(Text, nullable=True)
    # Hidden from the public listing when false
    is_active = Column(Boolean, nullable=False, default=True)

    products = relationship("Product", back_populates="category")

    __table_args__ = (
        Index("ix_categories_name", "name"),
        # A deleted category frees its name for reuse
        Index(
            "uq_categories_name_live",
            "name",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )
