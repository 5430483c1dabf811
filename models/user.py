from enum import Enum

from sqlalchemy import Boolean, Column, Index, String, text
from sqlalchemy.orm import relationship
from sqlalchemy.types import Enum as SAEnum

from models.base_model import Base, BaseModel, SoftDeleteMixin


class Role(str, Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


class Capability(str, Enum):
    SHOP = "shop"
    MANAGE_CATALOG = "manage_catalog"
    MANAGE_STOCK = "manage_stock"


# Closed mapping consulted by utils.decorators.capability_required
ROLE_CAPABILITIES = {
    Role.CUSTOMER: frozenset({Capability.SHOP}),
    Role.ADMIN: frozenset({Capability.SHOP, Capability.MANAGE_CATALOG, Capability.MANAGE_STOCK}),
}


class User(SoftDeleteMixin, BaseModel, Base):
    __tablename__ = "users"

    email = Column(String(255), nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    first_name = Column(String(255), nullable=True)
    last_name = Column(String(255), nullable=True)
    phone = Column(String(32), nullable=True)
    role = Column(SAEnum(Role, name="user_role", native_enum=False), nullable=False, default=Role.CUSTOMER)
    is_active = Column(Boolean, nullable=False, default=True)

    cart = relationship("Cart", back_populates="user", uselist=False, passive_deletes=True)

    __table_args__ = (
        # Email is unique among users that have not been soft-deleted
        Index(
            "uq_users_email_live",
            "email",
            unique=True,
            sqlite_where=text("deleted_at IS NULL"),
            postgresql_where=text("deleted_at IS NULL"),
        ),
    )

    @property
    def password(self):
        raise AttributeError("Password: Write-only field")

    def can(self, capability: Capability) -> bool:
        return capability in ROLE_CAPABILITIES.get(Role(self.role), frozenset())
