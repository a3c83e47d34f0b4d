from sqlalchemy import DateTime, String
from sqlalchemy.orm import mapped_column
from .base import Base


class UserSession(Base):
    __tablename__ = "user_sessions"

    # SHA-256 hex digest of the cookie value.
    id = mapped_column(String(64), primary_key=True)
    username = mapped_column(String(64), nullable=False, index=True)
    role = mapped_column(String(32), nullable=False)
    issued_at = mapped_column(DateTime(timezone=True), nullable=False)
    expires_at = mapped_column(DateTime(timezone=True), nullable=False, index=True)
