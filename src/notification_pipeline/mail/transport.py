"""
Mail transports.

Supports two backends:
- SMTP via aiosmtplib (production)
- Log-only (development) - logs the email instead of sending

A transport signals failure only by raising.
"""

import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import List, Protocol

import aiosmtplib

from core.logging import mask_email
from notification_pipeline.config import SmtpConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundMail:
    """Transport-level message built from an envelope."""

    from_address: str
    to: str
    subject: str
    html: str

    def to_email_message(self) -> EmailMessage:
        """Build a MIME message with an HTML body."""
        message = EmailMessage()
        message["From"] = self.from_address
        message["To"] = self.to
        message["Subject"] = self.subject
        message.set_content(self.html, subtype="html")
        return message


class MailTransport(Protocol):
    async def send_mail(self, mail: OutboundMail) -> None: ...


class SmtpMailTransport:
    """Sends mail through an SMTP server.

    secure=True uses implicit TLS (port 465); secure=False connects in plain
    text and upgrades with STARTTLS when the server offers it.
    """

    def __init__(self, config: SmtpConfig):
        self.config = config

    async def send_mail(self, mail: OutboundMail) -> None:
        await aiosmtplib.send(
            mail.to_email_message(),
            hostname=self.config.host,
            port=self.config.port,
            username=self.config.username or None,
            password=self.config.password or None,
            use_tls=self.config.secure,
            start_tls=False if self.config.secure else None,
            timeout=self.config.timeout_seconds,
        )


class LogMailTransport:
    """Development transport - logs recipient and subject instead of sending.

    The body is never logged.
    """

    def __init__(self):
        self.sent: List[OutboundMail] = []

    async def send_mail(self, mail: OutboundMail) -> None:
        self.sent.append(mail)
        logger.info(
            f"EMAIL to={mask_email(mail.to)} subject={mail.subject}",
            extra={
                "recipient": mail.to,
                "subject": mail.subject,
                "value_size": len(mail.html),
            },
        )


__all__ = [
    "LogMailTransport",
    "MailTransport",
    "OutboundMail",
    "SmtpMailTransport",
]
