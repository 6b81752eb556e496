from core.database import Base
from sqlalchemy import Column, DateTime, String, Integer, ForeignKey
from sqlalchemy.orm import relationship
from models.mixins import CreatedAtMixin

class RefreshToken(Base, CreatedAtMixin):
    """
    An outstanding refresh token.

    The row is the source of truth for revocation: a signed token that is no
    longer stored here is rejected even if its signature and exp are fine.
    Login deletes every row of the user, refresh deletes the presented row
    and inserts its replacement, logout deletes the presented row.
    """
    __tablename__ = "refresh_tokens"

    #pk
    id = Column(Integer, primary_key=True, index=True)

    #fk
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    #relationships
    user = relationship("User", back_populates="refresh_tokens")

    token = Column(String(1024), nullable=False, unique=True, index=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
