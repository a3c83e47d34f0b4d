from datetime import timedelta

from asset_tracker.jobs.cleanup import purge_expired
from asset_tracker.models.base import utcnow
from asset_tracker.models.password_reset import PasswordReset
from asset_tracker.models.session import UserSession


def test_purge_expired_removes_stale_tokens_and_sessions(db_session, make_user):
    make_user("alice", "pw-one")
    make_user("bob", "pw-two")
    now = utcnow()
    db_session.add_all(
        [
            PasswordReset(username="alice", token_hash="a" * 64, expires_at=now - timedelta(hours=1)),
            PasswordReset(username="bob", token_hash="b" * 64, expires_at=now + timedelta(hours=1)),
            UserSession(
                id="c" * 64,
                username="alice",
                role="user",
                issued_at=now - timedelta(hours=2),
                expires_at=now - timedelta(hours=1),
            ),
            UserSession(
                id="d" * 64,
                username="bob",
                role="user",
                issued_at=now,
                expires_at=now + timedelta(hours=1),
            ),
        ]
    )
    db_session.commit()

    assert purge_expired() == (1, 1)

    db_session.expire_all()
    assert [row.username for row in db_session.query(PasswordReset).all()] == ["bob"]
    assert [row.username for row in db_session.query(UserSession).all()] == ["bob"]
