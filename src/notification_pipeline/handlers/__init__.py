"""Record handlers for the send-mail topic."""

from notification_pipeline.handlers.dedup import DeliveryDeduplicator
from notification_pipeline.handlers.delivery import DeliveryHandler, DeliveryResult

__all__ = [
    "DeliveryDeduplicator",
    "DeliveryHandler",
    "DeliveryResult",
]
