"""
Email delivery for expiry reminders.

The reminder dispatcher only depends on the EmailSender interface.
SmtpEmailSender delivers over SMTP with STARTTLS; smtplib is blocking,
so each send runs in a worker thread.
"""

import asyncio
import logging
import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage

from domainwatch.domain.errors import TransientError

logger = logging.getLogger(__name__)


class EmailSender(ABC):
    """Abstract interface for outbound email."""

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        """
        Deliver one message.

        Raises:
            TransientError: If delivery failed and may be retried later
        """
        pass


class SmtpEmailSender(EmailSender):
    """Delivers HTML email through an SMTP relay with STARTTLS."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.timeout = timeout_seconds

    async def send(self, to: str, subject: str, body: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(body, subtype="html")

        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"SMTP delivery to {to} via {self.host}:{self.port} failed: {e}")
            raise TransientError(f"Email delivery failed: {e}") from e

        logger.info(f"Email '{subject}' sent to {to}")

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            server.ehlo()
            server.starttls(context=ssl.create_default_context())
            server.ehlo()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(message)


def render_reminder_email(domain_name: str, days: int) -> tuple[str, str]:
    """Subject and HTML body for an expiry reminder."""
    subject = f"Domain Expiry Reminder: {domain_name}"
    body = (
        "<h2>Domain Expiry Reminder</h2>"
        f"<p>Your domain <strong>{domain_name}</strong> will expire in {days} days.</p>"
        "<p>Please renew your domain to avoid service interruption.</p>"
    )
    return subject, body
