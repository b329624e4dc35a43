"""Outgoing mail: SMTP when MAIL_HOST is configured, otherwise a log line only."""

from __future__ import annotations

import logging
import smtplib
from email.mime.text import MIMEText
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from gatehouse.core.config import Settings

logger = logging.getLogger(__name__)


class MailDeliveryError(Exception):
    """Raised when the SMTP server cannot be reached or rejects the message."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class Mailer:
    """Sends plain-text mail through the configured SMTP server."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    def is_configured(self) -> bool:
        return bool(self.settings.MAIL_HOST)

    def send(self, to: str, subject: str, body: str) -> None:
        if not self.is_configured():
            logger.info(
                "Mail not sent (MAIL_HOST not set)",
                extra={"mail_to": to, "mail_subject": subject},
            )
            return

        msg = MIMEText(body, "plain", "utf-8")
        msg["Subject"] = subject
        msg["From"] = self.settings.MAIL_FROM_ADDRESS
        msg["To"] = to

        try:
            with smtplib.SMTP(
                self.settings.MAIL_HOST,
                self.settings.MAIL_PORT,
                timeout=self.settings.MAIL_TIMEOUT_SEC,
            ) as server:
                if self.settings.MAIL_USE_TLS:
                    server.starttls()
                if self.settings.MAIL_USERNAME and self.settings.MAIL_PASSWORD:
                    server.login(
                        self.settings.MAIL_USERNAME,
                        self.settings.MAIL_PASSWORD.get_secret_value(),
                    )
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Mail delivery failed", extra={"mail_to": to, "reason": str(e)[:200]})
            raise MailDeliveryError(f"Mail delivery failed: {e}") from e
        logger.info("Mail sent", extra={"mail_to": to, "mail_subject": subject})
