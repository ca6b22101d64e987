"""
Outbound email for the account lifecycle.

Notifier.send(to_address, subject, html_body) returns a delivery id or
raises NotificationError. Which failures are fatal is decided by the
caller (services.account_manager).
"""
from __future__ import annotations

import logging
import smtplib
import uuid
from email.message import EmailMessage
from html import escape
from typing import Any, Mapping

from services.errors import NotificationError

logger = logging.getLogger(__name__)


class Notifier:
    def send(self, to_address: str, subject: str, html_body: str) -> str:
        raise NotImplementedError


class ConsoleNotifier(Notifier):
    """Development backend: logs the message instead of delivering it."""

    def send(self, to_address: str, subject: str, html_body: str) -> str:
        delivery_id = str(uuid.uuid4())
        logger.info("Email %s to %s: %s\n%s", delivery_id, to_address, subject, html_body)
        return delivery_id


class SmtpNotifier(Notifier):
    def __init__(self, host: str, port: int, sender: str, username: str | None = None,
                 password: str | None = None, use_tls: bool = True, timeout: float = 10.0):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to_address: str, subject: str, html_body: str) -> str:
        delivery_id = f"<{uuid.uuid4()}@{self.host}>"
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to_address
        message["Subject"] = subject
        message["Message-ID"] = delivery_id
        message.set_content("This message requires an HTML capable mail client.")
        message.add_alternative(html_body, subtype="html")
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username:
                    smtp.login(self.username, self.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send '%s' to %s: %s", subject, to_address, exc)
            raise NotificationError() from exc
        logger.info("Email %s sent to %s", delivery_id, to_address)
        return delivery_id


def notifier_from_config(config: Mapping[str, Any]) -> Notifier:
    backend = (config.get("MAIL_BACKEND") or "console").lower()
    if backend == "smtp":
        return SmtpNotifier(
            host=config["MAIL_SERVER"],
            port=int(config["MAIL_PORT"]),
            sender=config["MAIL_DEFAULT_SENDER"],
            username=config.get("MAIL_USERNAME"),
            password=config.get("MAIL_PASSWORD"),
            use_tls=bool(config.get("MAIL_USE_TLS", True)),
        )
    if backend == "console":
        return ConsoleNotifier()
    raise ValueError(f"Unknown MAIL_BACKEND: {backend}")


# message bodies

def verification_email(name: str, link: str) -> tuple[str, str]:
    return (
        "Verify your email",
        f"<p>Hello {escape(name)},</p>"
        f"<p>Please confirm your email address by opening the link below. "
        f"The link is valid for one hour.</p>"
        f'<p><a href="{escape(link, quote=True)}">Verify email</a></p>',
    )


def password_reset_email(name: str, link: str) -> tuple[str, str]:
    return (
        "Reset your password",
        f"<p>Hello {escape(name)},</p>"
        f"<p>We received a request to reset your password. The link below is valid for one hour. "
        f"If you did not ask for this, you can ignore this email.</p>"
        f'<p><a href="{escape(link, quote=True)}">Reset password</a></p>',
    )


def password_changed_email(name: str) -> tuple[str, str]:
    return (
        "Your password was changed",
        f"<p>Hello {escape(name)},</p>"
        f"<p>Your password has been reset successfully. "
        f"If this was not you, contact support immediately.</p>",
    )
