"""Message schemas for the notification pipeline."""

from notification_pipeline.schemas.envelope import MailEnvelope

__all__ = [
    "MailEnvelope",
]
