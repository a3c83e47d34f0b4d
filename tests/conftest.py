import os
from datetime import datetime, timedelta, timezone

import pytest

# Ensure critical env vars are set before asset_tracker imports
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_JSON", "false")
os.environ.setdefault("SESSION_BACKEND", "database")
os.environ.setdefault("DEFAULT_ADMIN_USERNAME", "admin")
os.environ.setdefault("DEFAULT_ADMIN_PASSWORD", "admin123")
os.environ.setdefault("EMAIL_FROM", "assets@example.com")


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


class FakeMailer:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def send(self, *, to: str, subject: str, html: str, text: str) -> None:
        from asset_tracker.errors import DeliveryError

        if self.fail:
            raise DeliveryError(reason="smtp down")
        self.sent.append({"to": to, "subject": subject, "html": html, "text": text})

    def last_token(self) -> str:
        text = self.sent[-1]["text"]
        return text.split("token=", 1)[1].split()[0]


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def db_session(tmp_path, monkeypatch):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{db_path}")

    from asset_tracker.auth import get_password_context
    from asset_tracker.config import get_settings
    from asset_tracker.database import reset_engine, init_db, get_sessionmaker

    get_settings.cache_clear()
    get_password_context.cache_clear()
    reset_engine()
    init_db()

    SessionLocal = get_sessionmaker()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        reset_engine()


@pytest.fixture
def make_user(db_session):
    from asset_tracker.auth import create_user

    def _make(username: str, password: str, role: str = "user", email: str | None = None):
        return create_user(db_session, username, password, role=role, email=email)

    return _make


@pytest.fixture
def app(db_session, mailer):
    from asset_tracker.main import create_app

    return create_app(mailer=mailer)


@pytest.fixture
def client(app):
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def logged_in_client(client):
    resp = client.post("/api/login", json={"username": "admin", "password": "admin123"})
    assert resp.json()["success"] is True
    return client
