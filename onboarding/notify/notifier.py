"""Email delivery.

The notifier contract is ``send(recipient, subject, text, html=None)``
returning True on success. Delivery failures are logged and reported as
False, never raised: notification is always a best-effort tail step.
"""

import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional, Protocol

from onboarding.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Notifier(Protocol):
    async def send(self, recipient: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        ...


class LogNotifier:
    """Writes messages to the log instead of sending them (development default)."""

    async def send(self, recipient: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        LOGGER.info(f"Email to {recipient}: {subject}\n{text}")
        return True


class SmtpNotifier:
    """Sends multipart (text + HTML) email through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
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

    def build_message(self, recipient: str, subject: str, text: str, html: Optional[str] = None) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(text)
        if html:
            message.add_alternative(html, subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.starttls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password or "")
            smtp.send_message(message)

    async def send(self, recipient: str, subject: str, text: str, html: Optional[str] = None) -> bool:
        message = self.build_message(recipient, subject, text, html)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as e:
            LOGGER.error(f"Failed to send email to {recipient}: {e}")
            return False
        LOGGER.info(f"Email sent successfully to {recipient}")
        return True
