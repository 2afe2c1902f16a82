"""
mail/service.py -- EmailService protocol and its two backends.

LogEmailService: development default. Writes recipient and subject to the
    accounts.mail logger; the HTML body is logged at DEBUG only, since it
    carries verification links.

SmtpEmailService: stdlib smtplib, run in a worker thread so the event loop is
    not blocked on the SMTP conversation. Any transport failure is re-raised
    as EmailDeliveryError; what to do about it is the caller's decision.
"""

from __future__ import annotations

import asyncio
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage as MimeMessage
from typing import Protocol

from core.config import Settings
from mail.errors import EmailDeliveryError

logger = logging.getLogger("accounts.mail")


@dataclass(frozen=True)
class EmailMessage:
    to: str
    body: str  # HTML
    subject: str = ""


class EmailService(Protocol):
    async def send_email(self, message: EmailMessage) -> None: ...


class LogEmailService:
    """Pretend delivery. Nothing leaves the process."""

    async def send_email(self, message: EmailMessage) -> None:
        logger.info("Email (log backend) to=%s subject=%r", message.to, message.subject)
        logger.debug("Email body for %s:\n%s", message.to, message.body)


class SmtpEmailService:
    """Deliver through an SMTP relay, optionally upgrading with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        *,
        sender: str,
        username: str = "",
        password: str = "",
        starttls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.starttls = starttls
        self.timeout = timeout

    def _build(self, message: EmailMessage) -> MimeMessage:
        mime = MimeMessage()
        mime["From"] = self.sender
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.set_content(message.body, subtype="html")
        return mime

    def _deliver(self, mime: MimeMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.starttls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(mime)

    async def send_email(self, message: EmailMessage) -> None:
        mime = self._build(message)
        try:
            await asyncio.to_thread(self._deliver, mime)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(message.to, str(exc)) from exc
        logger.info("Email sent to=%s subject=%r via %s:%d", message.to, message.subject, self.host, self.port)


def build_email_service(settings: Settings) -> EmailService:
    """Pick the backend named by MAIL_BACKEND."""
    if settings.mail_backend == "smtp":
        return SmtpEmailService(
            settings.smtp_host,
            settings.smtp_port,
            sender=settings.mail_from,
            username=settings.smtp_username,
            password=settings.smtp_password,
            starttls=settings.smtp_starttls,
            timeout=settings.smtp_timeout_seconds,
        )
    return LogEmailService()
