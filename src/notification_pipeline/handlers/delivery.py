"""
Email delivery handler.

Turns a send-mail record into one outbound email. Fire-once policy: decode
and transport failures are logged and returned, never raised and never
retried, so the consumer loop always moves on.
"""

import logging
import time
from dataclasses import dataclass
from typing import Optional, Union

from aiokafka.structs import ConsumerRecord

from core.errors import PipelineError
from notification_pipeline.exceptions import DeliveryError, EnvelopeDecodeError
from notification_pipeline.handlers.dedup import DeliveryDeduplicator
from notification_pipeline.mail import MailTransport, OutboundMail
from notification_pipeline.metrics import (
    delivery_duration_seconds,
    record_delivery_error,
    record_email_outcome,
)
from notification_pipeline.schemas import MailEnvelope

logger = logging.getLogger(__name__)

Payload = Union[bytes, str, MailEnvelope, None]


@dataclass(frozen=True)
class DeliveryResult:
    """Outcome of one delivery attempt.

    Attributes:
        success: True if the transport accepted the email
        envelope: Decoded envelope (None when decoding failed)
        error: EnvelopeDecodeError or DeliveryError on failure
        duplicate: True if skipped because its idempotency key was seen
    """

    success: bool
    envelope: Optional[MailEnvelope] = None
    error: Optional[PipelineError] = None
    duplicate: bool = False


class DeliveryHandler:
    """
    Delivers decoded envelopes through a mail transport.

    Usable on its own with a crafted envelope; the broker is only involved
    through handle_record(), the consumer callback.

    Example:
        >>> handler = DeliveryHandler(LogMailTransport(), "NextHire <no-reply@nexthire.dev>")
        >>> result = await handler.deliver(b'{"to": "a@b.com", "subject": "Hi", "html": "<p>Hi</p>"}')
        >>> result.success
        True
    """

    def __init__(
        self,
        transport: MailTransport,
        from_address: str,
        deduplicator: Optional[DeliveryDeduplicator] = None,
    ):
        self.transport = transport
        self.from_address = from_address
        self.deduplicator = deduplicator

    async def handle_record(self, record: ConsumerRecord) -> DeliveryResult:
        """Consumer callback: deliver the record's value."""
        return await self.deliver(record.value)

    async def deliver(self, payload: Payload) -> DeliveryResult:
        """
        Decode `payload` and send it as an email.

        Args:
            payload: Raw record value or an already decoded envelope

        Returns:
            DeliveryResult describing the outcome
        """
        try:
            envelope = (
                payload
                if isinstance(payload, MailEnvelope)
                else MailEnvelope.from_bytes(payload)
            )
        except EnvelopeDecodeError as e:
            record_email_outcome("invalid")
            record_delivery_error(e.category.value)
            logger.warning(
                "Dropping malformed mail envelope",
                extra={
                    "error_category": e.category.value,
                    "error_message": str(e),
                    "value_size": len(payload) if payload else 0,
                },
            )
            return DeliveryResult(success=False, error=e)

        log_extra = {
            "recipient": envelope.to,
            "subject": envelope.subject,
            "idempotency_key": envelope.idempotency_key,
        }

        if self.deduplicator is not None and self.deduplicator.seen(
            envelope.idempotency_key
        ):
            record_email_outcome("duplicate")
            logger.info("Skipping already delivered email", extra=log_extra)
            return DeliveryResult(success=True, envelope=envelope, duplicate=True)

        mail = OutboundMail(
            from_address=self.from_address,
            to=envelope.to,
            subject=envelope.subject,
            html=envelope.html,
        )

        start = time.perf_counter()
        try:
            await self.transport.send_mail(mail)
        except Exception as e:
            error = DeliveryError.from_exception(e, context={"recipient": envelope.to})
            record_email_outcome("failed")
            record_delivery_error(error.category.value)
            logger.error(
                "Failed to send email",
                extra={
                    **log_extra,
                    "error_category": error.category.value,
                    "smtp_code": error.smtp_code,
                    "error_type": type(e).__name__,
                },
            )
            return DeliveryResult(success=False, envelope=envelope, error=error)
        finally:
            delivery_duration_seconds.observe(time.perf_counter() - start)

        if self.deduplicator is not None:
            self.deduplicator.mark(envelope.idempotency_key)

        record_email_outcome("sent")
        logger.info(
            "Email sent",
            extra={
                **log_extra,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )
        return DeliveryResult(success=True, envelope=envelope)


__all__ = [
    "DeliveryHandler",
    "DeliveryResult",
]
