import enum

from sqlalchemy import String
from sqlalchemy.orm import mapped_column
from .base import Base, UUIDMixin, TimestampMixin


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    USER = "user"


class User(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "users"

    username = mapped_column(String(64), unique=True, nullable=False)
    role = mapped_column(String(32), nullable=False, default=UserRole.USER.value)
    password_hash = mapped_column(String(256), nullable=False)
    email = mapped_column(String(256), nullable=True)
