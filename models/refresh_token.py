"""
RefreshToken model: one row per issued refresh token so tokens can be
rotated and revoked. Rows are revoked, never deleted.
Fields:
- token (unique) - the signed refresh JWT
- user_id (String(36)) - FK to users.id
- is_revoked (bool)
- expires_at, created_at, updated_at
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from models.base_model import BaseModel, Base, as_utc


class RefreshToken(BaseModel, Base):
    __tablename__ = "refresh_tokens"

    token = Column(String(1024), nullable=False, unique=True, index=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    is_revoked = Column(Boolean, default=False, nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)

    user = relationship("User", back_populates="refresh_tokens")

    def is_expired(self, now) -> bool:
        return as_utc(now) > as_utc(self.expires_at)

    def __repr__(self):
        return f"<RefreshToken user={self.user_id} revoked={self.is_revoked}>"
