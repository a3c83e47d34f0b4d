from __future__ import annotations

import hashlib
import json
import logging
import secrets
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import delete
from sqlalchemy.exc import SQLAlchemyError

from ..config import Settings
from ..database import session_scope
from ..errors import StorageError
from ..models.base import ensure_utc, utcnow
from ..models.session import UserSession

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    username: str
    role: str

    def to_dict(self) -> dict[str, str]:
        return {"username": self.username, "role": self.role}


@dataclass(frozen=True)
class SessionRecord:
    principal: Principal
    issued_at: datetime
    expires_at: datetime

    def is_expired(self, now: datetime) -> bool:
        return ensure_utc(now) >= ensure_utc(self.expires_at)


def session_key(session_id: str) -> str:
    return hashlib.sha256(session_id.encode("utf-8")).hexdigest()


class InMemorySessionStore:
    """Process-local store. Replicas behind a load balancer must be sticky."""

    def __init__(self):
        self._lock = threading.Lock()
        self._data: dict[str, SessionRecord] = {}

    def save(self, key: str, record: SessionRecord) -> None:
        with self._lock:
            self._data[key] = record

    def load(self, key: str) -> Optional[SessionRecord]:
        with self._lock:
            return self._data.get(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def purge_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [k for k, rec in self._data.items() if rec.is_expired(now)]
            for k in expired:
                self._data.pop(k, None)
            return len(expired)


class DatabaseSessionStore:
    def __init__(self, session_factory=None):
        self._session_factory = session_factory

    def save(self, key: str, record: SessionRecord) -> None:
        try:
            with session_scope(self._session_factory) as db:
                db.merge(
                    UserSession(
                        id=key,
                        username=record.principal.username,
                        role=record.principal.role,
                        issued_at=record.issued_at,
                        expires_at=record.expires_at,
                    )
                )
        except SQLAlchemyError as exc:
            raise StorageError(operation="session_save") from exc

    def load(self, key: str) -> Optional[SessionRecord]:
        try:
            with session_scope(self._session_factory) as db:
                row = db.get(UserSession, key)
                if row is None:
                    return None
                return SessionRecord(
                    principal=Principal(username=row.username, role=row.role),
                    issued_at=ensure_utc(row.issued_at),
                    expires_at=ensure_utc(row.expires_at),
                )
        except SQLAlchemyError as exc:
            raise StorageError(operation="session_load") from exc

    def delete(self, key: str) -> None:
        try:
            with session_scope(self._session_factory) as db:
                db.execute(delete(UserSession).where(UserSession.id == key))
        except SQLAlchemyError as exc:
            raise StorageError(operation="session_delete") from exc

    def purge_expired(self, now: datetime) -> int:
        try:
            with session_scope(self._session_factory) as db:
                result = db.execute(delete(UserSession).where(UserSession.expires_at <= now))
                return result.rowcount or 0
        except SQLAlchemyError as exc:
            raise StorageError(operation="session_purge") from exc


class RedisSessionStore:
    """Sessions in Redis; the key TTL mirrors the absolute session expiry."""

    prefix = "session:"

    def __init__(self, client, clock: Callable[[], datetime] = utcnow):
        self._redis = client
        self._clock = clock

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionStore":
        import redis

        client = redis.Redis.from_url(url)
        client.ping()
        return cls(client)

    def save(self, key: str, record: SessionRecord) -> None:
        ttl = int((record.expires_at - self._clock()).total_seconds())
        payload = json.dumps(
            {
                "username": record.principal.username,
                "role": record.principal.role,
                "issued_at": record.issued_at.isoformat(),
                "expires_at": record.expires_at.isoformat(),
            }
        )
        self._redis.set(name=self.prefix + key, value=payload, ex=max(ttl, 1))

    def load(self, key: str) -> Optional[SessionRecord]:
        raw = self._redis.get(self.prefix + key)
        if not raw:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        data = json.loads(raw)
        return SessionRecord(
            principal=Principal(username=data["username"], role=data["role"]),
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )

    def delete(self, key: str) -> None:
        self._redis.delete(self.prefix + key)

    def purge_expired(self, now: datetime) -> int:
        # Redis evicts on TTL.
        return 0


class SessionManager:
    """Maps opaque session ids to principals with an absolute TTL from issuance."""

    def __init__(self, store, ttl_seconds: int = 3600, clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.ttl = timedelta(seconds=ttl_seconds)
        self._clock = clock

    def create(self, principal: Principal) -> str:
        session_id = secrets.token_urlsafe(32)
        now = self._clock()
        self.store.save(
            session_key(session_id),
            SessionRecord(principal=principal, issued_at=now, expires_at=now + self.ttl),
        )
        return session_id

    def resolve(self, session_id: str | None) -> Principal | None:
        if not session_id:
            return None
        key = session_key(session_id)
        record = self.store.load(key)
        if record is None:
            return None
        if record.is_expired(self._clock()):
            self.store.delete(key)
            return None
        return record.principal

    def destroy(self, session_id: str | None) -> None:
        if not session_id:
            return
        self.store.delete(session_key(session_id))

    def purge_expired(self) -> int:
        return self.store.purge_expired(self._clock())


def build_session_store(settings: Settings):
    backend = settings.SESSION_BACKEND.lower()
    if backend == "redis":
        return RedisSessionStore.from_url(settings.REDIS_URL)
    if backend == "memory":
        logger.warning(
            "In-memory session store selected; sessions are not shared between processes"
        )
        return InMemorySessionStore()
    if backend != "database":
        raise RuntimeError(f"Unknown SESSION_BACKEND: {settings.SESSION_BACKEND}")
    return DatabaseSessionStore()


def build_session_manager(settings: Settings) -> SessionManager:
    store = build_session_store(settings)
    logger.info("Session backend: %s", settings.SESSION_BACKEND)
    return SessionManager(store, ttl_seconds=settings.SESSION_TTL_SECONDS)
