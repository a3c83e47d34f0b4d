from .base import Base
from .user import User, UserRole
from .password_reset import PasswordReset
from .session import UserSession
from .assets import ASSET_MODELS, AssetRecordMixin, get_asset_model

__all__ = [
    "Base",
    "User",
    "UserRole",
    "PasswordReset",
    "UserSession",
    "ASSET_MODELS",
    "AssetRecordMixin",
    "get_asset_model",
]
