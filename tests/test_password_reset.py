from unittest import mock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from asset_tracker.auth import authenticate, get_user
from asset_tracker.database import get_sessionmaker
from asset_tracker.errors import (
    DeliveryError,
    InvalidCredentials,
    InvalidToken,
    NotFound,
    StorageError,
    TokenExpired,
    ValidationError,
)
from asset_tracker.models.password_reset import PasswordReset
from asset_tracker.services import password_reset as password_reset_module
from asset_tracker.services.password_reset import PasswordResetService, hash_token
from conftest import FakeMailer


@pytest.fixture
def service(db_session, mailer, clock):
    return PasswordResetService(db_session, mailer, clock=clock)


def test_request_mails_link_and_stores_only_digest(db_session, service, mailer, make_user):
    make_user("alice", "old-password", email="alice@example.com")

    service.request_reset("alice")

    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "alice@example.com"
    token = mailer.last_token()
    assert "reset-password.html?token=" + token in mailer.sent[0]["html"]
    row = db_session.query(PasswordReset).one()
    assert row.username == "alice"
    assert row.token_hash == hash_token(token)
    assert token not in row.token_hash


def test_request_without_email_falls_back_to_sender(service, mailer, make_user):
    make_user("bob", "old-password")

    service.request_reset("bob")

    assert mailer.sent[0]["to"] == "assets@example.com"


def test_second_request_supersedes_first(db_session, service, mailer, make_user):
    make_user("alice", "old-password")

    service.request_reset("alice")
    first = mailer.last_token()
    service.request_reset("alice")
    second = mailer.last_token()

    assert first != second
    assert db_session.query(PasswordReset).filter_by(username="alice").count() == 1
    with pytest.raises(InvalidToken):
        service.reset_password(first, "new-password")
    service.reset_password(second, "new-password")


def test_unknown_user_is_not_found(service, mailer):
    with pytest.raises(NotFound):
        service.request_reset("nobody")
    assert mailer.sent == []


def test_missing_username_is_validation_error(service):
    with pytest.raises(ValidationError):
        service.request_reset("")


def test_delivery_failure_raises_generic_error(db_session, clock, make_user):
    make_user("alice", "old-password")
    service = PasswordResetService(db_session, FakeMailer(fail=True), clock=clock)

    with pytest.raises(DeliveryError) as excinfo:
        service.request_reset("alice")

    assert "token" not in excinfo.value.user_message.lower()


def test_reset_changes_password_and_consumes_token(db_session, service, mailer, make_user):
    make_user("alice", "old-password")
    service.request_reset("alice")
    token = mailer.last_token()

    service.reset_password(token, "brand-new")

    assert authenticate(db_session, "alice", "brand-new").username == "alice"
    with pytest.raises(InvalidCredentials):
        authenticate(db_session, "alice", "old-password")
    assert db_session.query(PasswordReset).count() == 0


def test_consumed_token_cannot_be_reused(service, mailer, make_user):
    make_user("alice", "old-password")
    service.request_reset("alice")
    token = mailer.last_token()
    service.reset_password(token, "brand-new")

    with pytest.raises(InvalidToken) as excinfo:
        service.reset_password(token, "another-one")
    assert type(excinfo.value) is InvalidToken


def test_token_accepted_just_before_expiry(service, mailer, make_user, clock):
    make_user("alice", "old-password")
    service.request_reset("alice")
    token = mailer.last_token()

    clock.advance(seconds=3599, microseconds=999999)
    service.reset_password(token, "brand-new")


def test_token_rejected_at_expiry_instant(db_session, service, mailer, make_user, clock):
    make_user("alice", "old-password")
    service.request_reset("alice")
    token = mailer.last_token()

    clock.advance(seconds=3600)
    with pytest.raises(TokenExpired):
        service.reset_password(token, "brand-new")
    # Expired rows are left for the cleanup job.
    assert db_session.query(PasswordReset).count() == 1


def test_unknown_token_is_invalid(service):
    with pytest.raises(InvalidToken):
        service.reset_password("made-up-token", "brand-new")


def test_missing_fields_are_validation_errors(service):
    with pytest.raises(ValidationError):
        service.reset_password("", "brand-new")
    with pytest.raises(ValidationError):
        service.reset_password("token", "")


def test_failed_commit_keeps_token_and_old_password(db_session, service, mailer, make_user):
    make_user("alice", "old-password")
    service.request_reset("alice")
    token = mailer.last_token()

    with mock.patch.object(
        db_session, "commit", side_effect=OperationalError("UPDATE", {}, Exception("disk full"))
    ):
        with pytest.raises(StorageError):
            service.reset_password(token, "brand-new")

    db_session.expire_all()
    assert authenticate(db_session, "alice", "old-password").username == "alice"
    assert db_session.query(PasswordReset).filter_by(username="alice").count() == 1
    service.reset_password(token, "brand-new")


def test_purge_expired_removes_only_stale_tokens(db_session, service, mailer, make_user, clock):
    make_user("alice", "pw-one")
    make_user("bob", "pw-two")
    service.request_reset("alice")
    clock.advance(minutes=30)
    service.request_reset("bob")
    clock.advance(minutes=31)

    assert service.purge_expired() == 1
    remaining = db_session.query(PasswordReset).one()
    assert remaining.username == "bob"
    assert get_user(db_session, "bob") is not None


@pytest.fixture
def rival_db(db_session):
    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()


def test_token_is_single_use_across_concurrent_consumers(
    db_session, rival_db, service, mailer, make_user, clock, monkeypatch
):
    make_user("alice", "old-password")
    service.request_reset("alice")
    token = mailer.last_token()
    rival = PasswordResetService(rival_db, mailer, clock=clock)

    real_hash = password_reset_module.hash_password
    raced = []

    def hash_after_rival_consumes(password):
        if not raced:
            raced.append(password)
            rival.reset_password(token, "pw-rival")
        return real_hash(password)

    monkeypatch.setattr(password_reset_module, "hash_password", hash_after_rival_consumes)

    with pytest.raises(InvalidToken):
        service.reset_password(token, "pw-first")

    db_session.expire_all()
    assert authenticate(db_session, "alice", "pw-rival").username == "alice"
    with pytest.raises(InvalidCredentials):
        authenticate(db_session, "alice", "pw-first")
    assert db_session.query(PasswordReset).count() == 0


def test_store_retries_when_concurrent_request_inserts_first(
    db_session, rival_db, service, mailer, make_user, clock, monkeypatch
):
    make_user("alice", "old-password")
    rival = PasswordResetService(rival_db, mailer, clock=clock)
    real_commit = db_session.commit
    commits = []

    def commit_after_rival_insert():
        commits.append(1)
        if len(commits) == 1:
            # The rival's row lands while ours is still uncommitted.
            db_session.rollback()
            rival.request_reset("alice")
            raise IntegrityError(
                "INSERT INTO password_resets", {}, Exception("UNIQUE constraint failed")
            )
        real_commit()

    monkeypatch.setattr(db_session, "commit", commit_after_rival_insert)

    service.request_reset("alice")

    assert len(commits) == 2
    assert len(mailer.sent) == 2
    rival_token = mailer.sent[0]["text"].split("token=", 1)[1].split()[0]
    final_token = mailer.last_token()
    assert db_session.query(PasswordReset).filter_by(username="alice").count() == 1
    with pytest.raises(InvalidToken):
        service.reset_password(rival_token, "via-rival")
    service.reset_password(final_token, "via-final")
    assert authenticate(db_session, "alice", "via-final").username == "alice"


def test_store_gives_up_after_repeated_conflicts(db_session, service, mailer, make_user):
    make_user("alice", "old-password")
    conflict = IntegrityError("INSERT INTO password_resets", {}, Exception("UNIQUE constraint failed"))

    with mock.patch.object(db_session, "commit", side_effect=conflict) as commit:
        with pytest.raises(StorageError):
            service.request_reset("alice")

    assert commit.call_count == 3
    assert mailer.sent == []
    assert db_session.query(PasswordReset).count() == 0
