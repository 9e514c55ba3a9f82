"""Outbound mail transports."""

from notification_pipeline.mail.transport import (
    LogMailTransport,
    MailTransport,
    OutboundMail,
    SmtpMailTransport,
)

__all__ = [
    "LogMailTransport",
    "MailTransport",
    "OutboundMail",
    "SmtpMailTransport",
]
