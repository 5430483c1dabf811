from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship

from models.base_model import Base, BaseModel, SoftDeleteMixin


class Cart(BaseModel, Base):
    __tablename__ = "carts"

    # One cart per user, created at registration
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True)

    user = relationship("User", back_populates="cart")


class CartItem(SoftDeleteMixin, BaseModel, Base):
    __tablename__ = "cart_items"

    cart_id = Column(String(36), ForeignKey("carts.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(String(36), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    quantity = Column(Integer, nullable=False)

    cart = relationship("Cart")
    product = relationship("Product")

    __table_args__ = (
        CheckConstraint("quantity >= 1", name="ck_cart_items_quantity_positive"),
        # At most one live line per (cart, product)
        Index(
            "uq_cart_items_live_product",
            "cart_id",
            "product_id",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )
