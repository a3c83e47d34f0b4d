from __future__ import annotations

import logging
import smtplib
from email.message import EmailMessage

from ..config import Settings
from ..errors import DeliveryError

logger = logging.getLogger(__name__)


class SmtpMailer:
    def __init__(self, settings: Settings):
        self.settings = settings

    def send(self, *, to: str, subject: str, html: str, text: str) -> None:
        settings = self.settings
        if not settings.EMAIL_ENABLED or not settings.EMAIL_SMTP_HOST:
            raise DeliveryError(reason="email delivery is not configured")
        if not to:
            raise DeliveryError(reason="no recipient address")

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = settings.EMAIL_FROM
        message["To"] = to
        message.set_content(text)
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(
                settings.EMAIL_SMTP_HOST,
                settings.EMAIL_SMTP_PORT,
                timeout=settings.EMAIL_TIMEOUT_SECONDS,
            ) as smtp:
                if settings.EMAIL_USE_TLS:
                    smtp.starttls()
                if settings.EMAIL_SMTP_USERNAME:
                    smtp.login(settings.EMAIL_SMTP_USERNAME, settings.EMAIL_SMTP_PASSWORD)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise DeliveryError(reason=str(exc)) from exc
        logger.info("Mail sent: %s", subject)


def build_reset_email(reset_link: str, expiry_seconds: int) -> tuple[str, str, str]:
    minutes = max(expiry_seconds // 60, 1)
    subject = "Password Reset Request"
    text = (
        "You requested a password reset for your Asset Management account.\n"
        f"Open the link below to reset your password (valid for {minutes} minutes):\n"
        f"{reset_link}\n"
    )
    html = (
        "<p>You requested a password reset for your Asset Management account.</p>"
        f"<p>Click the link below to reset your password (valid for {minutes} minutes):</p>"
        f'<a href="{reset_link}">{reset_link}</a>'
    )
    return subject, html, text
