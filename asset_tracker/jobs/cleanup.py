import logging

from ..config import get_settings
from ..database import get_sessionmaker
from ..services.password_reset import PasswordResetService
from ..services.sessions import build_session_manager

logger = logging.getLogger(__name__)


def purge_expired() -> tuple[int, int]:
    """Delete reset tokens and sessions past their expiry.

    Expiry is always enforced on read, so this only reclaims space.
    """
    logger.info("Starting expired credential cleanup")
    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        token_count = PasswordResetService(db, mailer=None).purge_expired()
    finally:
        db.close()
    session_count = build_session_manager(get_settings()).purge_expired()
    logger.info("Removed %s expired reset tokens", token_count)
    logger.info("Removed %s expired sessions", session_count)
    return token_count, session_count


if __name__ == "__main__":
    purge_expired()
