from enum import Enum

from sqlalchemy import Column, String, Integer, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import BaseModel, Base


class InventoryReason(str, Enum):
    PURCHASE = "PURCHASE"
    SALE = "SALE"
    RETURN = "RETURN"
    ADJUSTMENT = "ADJUSTMENT"


class InventoryTransaction(BaseModel, Base):
    """One row per stock change: admin adjustments and order placement."""

    __tablename__ = "inventory_transactions"

    product_id = Column(String(36), ForeignKey("products.id", ondelete="RESTRICT"), nullable=False, index=True)
    delta_quantity = Column(Integer, nullable=False)  # positive or negative, but not zero
    reason = Column(SAEnum(InventoryReason, name="inventory_reason", native_enum=False), nullable=False)
    note = Column(String(255), nullable=True)
    # Snapshot after applying delta
    resulting_quantity = Column(Integer, nullable=False)
    order_id = Column(String(36), ForeignKey("orders.id", ondelete="SET NULL"), nullable=True)

    product = relationship("Product", backref="inventory_transactions")

    __table_args__ = (
        CheckConstraint("delta_quantity <> 0", name="ck_inv_delta_nonzero"),
        CheckConstraint("resulting_quantity >= 0", name="ck_inv_resulting_nonnegative"),
    )
