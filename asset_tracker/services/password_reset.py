from __future__ import annotations

import hashlib
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable
from urllib.parse import urlencode

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..auth import get_user, hash_password
from ..config import get_settings
from ..errors import InvalidToken, NotFound, StorageError, TokenExpired, ValidationError
from ..models.base import ensure_utc, utcnow
from ..models.password_reset import PasswordReset
from ..models.user import User
from .mailer import build_reset_email

logger = logging.getLogger(__name__)

_STORE_ATTEMPTS = 3


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class PasswordResetService:
    """Issues and consumes single-use, time-limited password reset tokens.

    A user has at most one live token: issuing a new one replaces the old row
    in the same transaction, and the unique constraint on ``username`` keeps
    two concurrent requests from both surviving. Expired tokens are rejected
    on use and left for the cleanup job.
    """

    def __init__(self, db: Session, mailer, clock: Callable[[], datetime] = utcnow):
        self.db = db
        self.mailer = mailer
        self.settings = get_settings()
        self._clock = clock

    def request_reset(self, username: str | None) -> None:
        if not username:
            raise ValidationError("Username is required")
        user = get_user(self.db, username)
        if not user:
            logger.info("Password reset requested for unknown user %s", username)
            raise NotFound(username=username)

        token = secrets.token_urlsafe(32)
        expires_at = self._clock() + timedelta(seconds=self.settings.RESET_TOKEN_EXPIRY_SECONDS)
        self._store_token(user.username, hash_token(token), expires_at)
        logger.info("Password reset token issued for %s", user.username)

        link = f"{self.settings.RESET_LINK_BASE_URL}?{urlencode({'token': token})}"
        subject, html, text = build_reset_email(link, self.settings.RESET_TOKEN_EXPIRY_SECONDS)
        self.mailer.send(
            to=user.email or self.settings.EMAIL_FROM, subject=subject, html=html, text=text
        )

    def reset_password(self, token: str | None, new_password: str | None) -> None:
        if not token or not new_password:
            raise ValidationError("Token and new password required")

        token_hash = hash_token(token)
        entry = self.db.query(PasswordReset).filter(PasswordReset.token_hash == token_hash).first()
        if entry is None:
            raise InvalidToken()
        if self._clock() >= ensure_utc(entry.expires_at):
            raise TokenExpired(username=entry.username)
        username = entry.username

        user = self.db.query(User).filter(User.username == username).first()
        if user is None:
            raise InvalidToken(username=username)

        new_hash = hash_password(new_password)
        try:
            # Claim the row before touching the password; a consumer that
            # claimed it first leaves nothing to delete.
            claimed = self.db.execute(
                delete(PasswordReset)
                .where(PasswordReset.token_hash == token_hash)
                .execution_options(synchronize_session=False)
            ).rowcount
            if claimed != 1:
                self.db.rollback()
                raise InvalidToken(username=username, reason="already consumed")
            user.password_hash = new_hash
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(operation="password_reset") from exc
        logger.info("Password reset completed for %s", username)

    def purge_expired(self) -> int:
        try:
            result = self.db.execute(
                delete(PasswordReset).where(PasswordReset.expires_at <= self._clock())
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(operation="reset_purge") from exc
        return result.rowcount or 0

    def _store_token(self, username: str, token_hash: str, expires_at: datetime) -> None:
        for attempt in range(1, _STORE_ATTEMPTS + 1):
            try:
                self.db.execute(delete(PasswordReset).where(PasswordReset.username == username))
                self.db.add(
                    PasswordReset(username=username, token_hash=token_hash, expires_at=expires_at)
                )
                self.db.commit()
                return
            except IntegrityError as exc:
                # A concurrent request inserted first; replace its row.
                self.db.rollback()
                if attempt == _STORE_ATTEMPTS:
                    raise StorageError(operation="reset_store") from exc
            except SQLAlchemyError as exc:
                self.db.rollback()
                raise StorageError(operation="reset_store") from exc
