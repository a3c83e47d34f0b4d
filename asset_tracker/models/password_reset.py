from sqlalchemy import DateTime, ForeignKey, Integer, String
from sqlalchemy.orm import mapped_column
from .base import Base, utcnow


class PasswordReset(Base):
    __tablename__ = "password_resets"

    id = mapped_column(Integer, primary_key=True, autoincrement=True)
    # One live token per user; a newer request replaces the row.
    username = mapped_column(
        String(64), ForeignKey("users.username", ondelete="CASCADE"), unique=True, nullable=False
    )
    # SHA-256 hex digest of the mailed token; the raw token is never stored.
    token_hash = mapped_column(String(64), unique=True, nullable=False, index=True)
    expires_at = mapped_column(DateTime(timezone=True), nullable=False)
    created_at = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
