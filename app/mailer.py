"""Outbound email: SMTP transport and a log-only sender."""

import smtplib
from email.message import EmailMessage
from typing import Optional

from . import config
from .errors import MailDeliveryError
from .logging_config import get_logger

logger = get_logger(__name__)


class SmtpMailer:
    """Sends plain-text mail over SMTP.

    SSL when `secure` is set (port 465), otherwise STARTTLS when the server
    offers it. Any transport failure is raised as MailDeliveryError.
    """

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        secure: bool = False,
        user: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        timeout: float = 30.0,
    ) -> None:
        self.host = host
        self.port = port
        self.secure = secure
        self.user = user
        self.password = password
        self.sender = sender or user
        self.timeout = timeout

    def _connect(self) -> smtplib.SMTP:
        if self.secure:
            return smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout)
        return smtplib.SMTP(self.host, self.port, timeout=self.timeout)

    def send(self, to_email: str, subject: str, body: str) -> None:
        if not self.host:
            raise MailDeliveryError("SMTP_HOST not configured.")

        message = EmailMessage()
        message["From"] = self.sender or ""
        message["To"] = to_email
        message["Subject"] = subject
        message.set_content(body)

        try:
            with self._connect() as smtp:
                if not self.secure:
                    smtp.ehlo()
                    if smtp.has_extn("starttls"):
                        smtp.starttls()
                        smtp.ehlo()
                if self.user:
                    smtp.login(self.user, self.password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailDeliveryError(f"Failed to send email: {exc}") from exc

        logger.info("Mail sent to %s (subject=%r)", to_email, subject[:80])


class LogOnlyMailer:
    """Logs instead of sending. Use when no SMTP server is available."""

    def send(self, to_email: str, subject: str, body: str) -> None:
        logger.info("Mail (log only) to %s (subject=%r)", to_email, subject[:80])
        logger.debug("Mail body (first 500 chars): %s", body[:500])


def build_mailer():
    """Mailer for the configured MAIL_BACKEND."""
    if config.MAIL_BACKEND == "log":
        return LogOnlyMailer()
    return SmtpMailer(
        host=config.SMTP_HOST,
        port=config.SMTP_PORT,
        secure=config.SMTP_SECURE,
        user=config.SMTP_USER,
        password=config.SMTP_PASS,
        sender=config.SMTP_FROM,
    )
