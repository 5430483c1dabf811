"""
RefreshToken model: stores refresh token JTIs so refresh tokens can be revoked and rotated.
Fields:
- jti (primary key) - the token identifier carried in the signed refresh JWT
- user_id (String(36)) - FK to users.id
- created_at, expires_at

A row existing means the token is still usable; rotation and logout delete it.
"""
from sqlalchemy import Column, DateTime, ForeignKey, String

from models.base_model import Base, BaseModel


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    jti = Column(String(64), primary_key=True, unique=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    # jti is the primary key; BaseModel.id is kept as a plain column
    id = Column(String(36), nullable=False)

    def __repr__(self):
        return f"<RefreshToken jti={self.jti} user={self.user_id}>"
