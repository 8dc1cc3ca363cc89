"""Refresh tokens revoked by logout, keyed by their `jti` claim."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String

from hms.database import Base
from hms.utils.clock import utcnow


class RevokedToken(Base):
    __tablename__ = "revoked_tokens"

    id = Column(Integer, primary_key=True, index=True)
    jti = Column(String(64), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    expires_at = Column(DateTime, nullable=False)  # purged by logout once passed
    revoked_at = Column(DateTime, nullable=False, default=utcnow)
