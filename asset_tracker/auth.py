import logging
from functools import lru_cache

from fastapi import Depends, Request
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import get_settings
from .errors import InvalidCredentials, Unauthorized
from .models.user import User, UserRole
from .services.sessions import Principal, SessionManager

logger = logging.getLogger(__name__)


@lru_cache
def get_password_context() -> CryptContext:
    settings = get_settings()
    return CryptContext(
        schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS
    )


def hash_password(password: str) -> str:
    return get_password_context().hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return get_password_context().verify(password, password_hash)


def get_user(db: Session, username: str) -> User | None:
    return db.query(User).filter(User.username == username).first()


def create_user(
    db: Session, username: str, password: str, role: str = UserRole.USER.value, email: str | None = None
) -> User | None:
    """Insert a user unless the username is taken; returns None when it already exists."""
    if role not in {r.value for r in UserRole}:
        raise ValueError(f"Unknown role: {role}")
    if get_user(db, username):
        return None
    user = User(username=username, role=role, password_hash=hash_password(password), email=email)
    db.add(user)
    db.commit()
    logger.info("User %s created", username)
    return user


def ensure_default_admin(db: Session) -> None:
    settings = get_settings()
    if not settings.SEED_DEFAULT_ADMIN:
        return
    create_user(
        db,
        settings.DEFAULT_ADMIN_USERNAME,
        settings.DEFAULT_ADMIN_PASSWORD,
        role=UserRole.ADMIN.value,
    )


def authenticate(db: Session, username: str, password: str) -> Principal:
    user = get_user(db, username)
    if not user:
        # Spend the same hashing time as a real check.
        get_password_context().dummy_verify()
        logger.info("Login failed for %s", username)
        raise InvalidCredentials()
    if not verify_password(password, user.password_hash):
        logger.info("Login failed for %s", username)
        raise InvalidCredentials()
    logger.info("Login succeeded for %s", username)
    return Principal(username=user.username, role=user.role)


def get_session_manager(request: Request) -> SessionManager:
    return request.app.state.session_manager


def get_session_id(request: Request) -> str | None:
    return request.cookies.get(get_settings().SESSION_COOKIE_NAME)


def get_current_principal(
    session_id: str | None = Depends(get_session_id),
    sessions: SessionManager = Depends(get_session_manager),
) -> Principal:
    principal = sessions.resolve(session_id)
    if principal is None:
        raise Unauthorized()
    return principal
