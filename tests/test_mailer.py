import smtplib

import pytest

from asset_tracker.config import Settings
from asset_tracker.errors import DeliveryError
from asset_tracker.services import mailer as mailer_module
from asset_tracker.services.mailer import SmtpMailer, build_reset_email


def _settings(**overrides):
    values = {
        "EMAIL_ENABLED": True,
        "EMAIL_SMTP_HOST": "smtp.test",
        "EMAIL_SMTP_USERNAME": "mailer",
        "EMAIL_SMTP_PASSWORD": "secret",
        "EMAIL_FROM": "assets@example.com",
    }
    values.update(overrides)
    return Settings(**values)


class FakeSMTP:
    instances = []

    def __init__(self, host, port, timeout=None):
        self.host = host
        self.port = port
        self.timeout = timeout
        self.calls = []
        FakeSMTP.instances.append(self)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def starttls(self):
        self.calls.append("starttls")

    def login(self, username, password):
        self.calls.append(("login", username))

    def send_message(self, message):
        self.calls.append(("send", message["To"], message["Subject"]))


@pytest.fixture
def fake_smtp(monkeypatch):
    FakeSMTP.instances = []
    monkeypatch.setattr(mailer_module.smtplib, "SMTP", FakeSMTP)
    return FakeSMTP


def test_disabled_mailer_raises_delivery_error():
    with pytest.raises(DeliveryError):
        SmtpMailer(_settings(EMAIL_ENABLED=False)).send(to="a@b.c", subject="s", html="h", text="t")


def test_send_uses_tls_login_and_timeout(fake_smtp):
    SmtpMailer(_settings()).send(to="alice@example.com", subject="Hi", html="<p>x</p>", text="x")

    smtp = fake_smtp.instances[0]
    assert (smtp.host, smtp.port, smtp.timeout) == ("smtp.test", 587, 10.0)
    assert smtp.calls == ["starttls", ("login", "mailer"), ("send", "alice@example.com", "Hi")]


def test_smtp_failure_becomes_delivery_error(monkeypatch):
    def refuse(*args, **kwargs):
        raise smtplib.SMTPConnectError(421, "busy")

    monkeypatch.setattr(mailer_module.smtplib, "SMTP", refuse)
    with pytest.raises(DeliveryError) as info:
        SmtpMailer(_settings()).send(to="a@b.c", subject="s", html="h", text="t")
    assert info.value.user_message == "Error sending reset link."


def test_reset_email_carries_link_in_both_bodies():
    link = "https://assets.local/reset-password?token=abc"
    subject, html, text = build_reset_email(link, 3600)

    assert subject == "Password Reset Request"
    assert f'href="{link}"' in html
    assert link in text.splitlines()
    assert "60 minutes" in text
