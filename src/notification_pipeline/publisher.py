"""
Best-effort notification publisher.

Upstream services (auth, user, job) call publish() whenever a user-facing
event needs an email. Publishing never raises: a notification failure must
not fail the request that triggered it. Callers get a PublishResult they are
free to ignore.

Usage:
    >>> publisher = await NotificationPublisher.connect(manager)
    >>> try:
    ...     await publisher.publish("send-mail", {
    ...         "to": "user@example.com",
    ...         "subject": "Welcome",
    ...         "html": "<p>Hi</p>",
    ...     })
    ... finally:
    ...     await publisher.close()
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from aiokafka import AIOKafkaProducer

from notification_pipeline.broker import BrokerConnectionManager
from notification_pipeline.exceptions import PublishError
from notification_pipeline.metrics import (
    record_message_published,
    record_producer_error,
    update_connection_status,
)
from notification_pipeline.schemas import MailEnvelope

logger = logging.getLogger(__name__)

Message = Union[MailEnvelope, Mapping[str, Any]]


@dataclass(frozen=True)
class PublishResult:
    """Outcome of a publish call.

    published is True only after the broker acknowledged the record.
    """

    topic: str
    published: bool
    partition: Optional[int] = None
    offset: Optional[int] = None
    error: Optional[PublishError] = None

    def __bool__(self) -> bool:
        return self.published


def serialize_message(message: Message) -> bytes:
    """Encode an envelope or JSON-serializable mapping as UTF-8 JSON."""
    if isinstance(message, MailEnvelope):
        return message.to_bytes()
    return json.dumps(message, ensure_ascii=False, separators=(",", ":")).encode(
        "utf-8"
    )


class NotificationPublisher:
    """
    Owns the process's producer handle.

    Construct once at service start (usually via connect()) and close once at
    shutdown. A publisher without a producer is valid: every publish is a
    logged no-op.

    The producer is shared by concurrent publish calls; aiokafka's producer
    supports concurrent sends, so no lock is taken here.
    """

    def __init__(
        self,
        producer: Optional[AIOKafkaProducer] = None,
        send_timeout_seconds: Optional[float] = None,
    ):
        self._producer = producer
        self.send_timeout_seconds = send_timeout_seconds

    @classmethod
    async def connect(
        cls,
        manager: BrokerConnectionManager,
        topic: Optional[str] = None,
    ) -> "NotificationPublisher":
        """
        Ensure the notification topic, then connect a producer.

        Never raises for broker failures; the returned publisher is simply
        unconnected if the topic could not be ensured or the producer could
        not start.
        """
        config = manager.config
        topic = topic or config.mail_topic
        status = await manager.ensure_topic(
            topic,
            config.mail_topic_partitions,
            config.mail_topic_replication_factor,
        )
        if not status.is_available:
            logger.error(
                "Topic not available, publisher left unconnected",
                extra={"topic": topic, "topic_status": status.value},
            )
            return cls(None, send_timeout_seconds=config.send_timeout_seconds)

        producer = await manager.connect_producer()
        return cls(producer, send_timeout_seconds=config.send_timeout_seconds)

    @property
    def is_connected(self) -> bool:
        return self._producer is not None

    async def publish(self, topic: str, message: Message) -> PublishResult:
        """
        Send one record to `topic` and wait for the broker acknowledgment.

        Returns:
            PublishResult; published=False when unconnected or on any failure
        """
        if self._producer is None:
            logger.warning(
                "Kafka producer is not connected, dropping notification",
                extra={"topic": topic},
            )
            record_message_published(topic, 0, status="skipped")
            return PublishResult(topic=topic, published=False)

        try:
            value = serialize_message(message)
        except (TypeError, ValueError) as e:
            return self._failed(topic, 0, e, "Failed to serialize notification")

        try:
            send = self._producer.send_and_wait(topic, value=value)
            if self.send_timeout_seconds is not None:
                metadata = await asyncio.wait_for(send, self.send_timeout_seconds)
            else:
                metadata = await send
        except asyncio.CancelledError:
            raise
        except Exception as e:
            return self._failed(
                topic, len(value), e, f"Failed to publish message to topic {topic}"
            )

        record_message_published(topic, len(value), status="success")
        logger.info(
            f"Message published to topic {topic}",
            extra={
                "topic": topic,
                "partition": metadata.partition,
                "offset": metadata.offset,
                "value_size": len(value),
            },
        )
        return PublishResult(
            topic=topic,
            published=True,
            partition=metadata.partition,
            offset=metadata.offset,
        )

    def _failed(
        self, topic: str, value_size: int, exc: Exception, msg: str
    ) -> PublishResult:
        record_message_published(topic, value_size, status="error")
        record_producer_error(topic, type(exc).__name__)
        error = PublishError(msg, cause=exc, context={"topic": topic})
        logger.error(
            msg,
            extra={
                "topic": topic,
                "value_size": value_size,
                "error_type": type(exc).__name__,
                "error_message": str(exc),
            },
            exc_info=exc,
        )
        return PublishResult(topic=topic, published=False, error=error)

    async def close(self) -> None:
        """
        Flush and stop the producer.

        Safe to call multiple times; errors are logged, not raised.
        """
        if self._producer is None:
            return

        producer, self._producer = self._producer, None
        try:
            await producer.flush()
            await producer.stop()
            logger.info("Kafka producer disconnected")
        except Exception as e:
            logger.error(
                "Failed to disconnect Kafka producer",
                extra={"error_message": str(e)},
                exc_info=True,
            )
        finally:
            update_connection_status("producer", connected=False)


__all__ = [
    "NotificationPublisher",
    "PublishResult",
    "serialize_message",
]
