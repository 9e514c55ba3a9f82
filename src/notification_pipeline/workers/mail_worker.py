"""
Mail worker.

Consumes MailEnvelope records from the send-mail topic and delivers each one
as an email through the configured transport.

Startup sequence:
1. Ensure the send-mail topic exists (BrokerConnectionError if it cannot be)
2. Build the delivery handler, with an idempotency-key cache when enabled
3. Run the consumer until stopped
"""

import logging
from typing import Any, Callable, Optional

from notification_pipeline.broker import BrokerConnectionManager, TopicStatus
from notification_pipeline.config import NotificationConfig
from notification_pipeline.consumer import NotificationConsumer
from notification_pipeline.exceptions import BrokerConnectionError
from notification_pipeline.handlers import DeliveryDeduplicator, DeliveryHandler
from notification_pipeline.mail import MailTransport, SmtpMailTransport

logger = logging.getLogger(__name__)


class MailWorker:
    """
    Worker that turns send-mail records into emails.

    Usage:
        config = NotificationConfig.load_config()
        worker = MailWorker(config)
        await worker.start()  # Runs until stopped
        await worker.stop()
    """

    def __init__(
        self,
        config: NotificationConfig,
        transport: Optional[MailTransport] = None,
        consumer_factory: Optional[Callable[..., Any]] = None,
        admin_factory: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize mail worker.

        Args:
            config: Pipeline configuration
            transport: Mail transport (defaults to SMTP from config.smtp)
            consumer_factory: Kafka consumer factory, injectable for tests
            admin_factory: Kafka admin client factory, injectable for tests
        """
        self.config = config
        kafka = config.kafka

        self.transport = transport or SmtpMailTransport(config.smtp)

        deduplicator = None
        if config.delivery.dedup_ttl_seconds > 0:
            deduplicator = DeliveryDeduplicator(
                ttl_seconds=config.delivery.dedup_ttl_seconds,
                max_entries=config.delivery.dedup_max_entries,
            )

        self.handler = DeliveryHandler(
            transport=self.transport,
            from_address=config.smtp.from_address,
            deduplicator=deduplicator,
        )
        self.broker = BrokerConnectionManager(kafka, admin_factory=admin_factory)
        self.consumer = NotificationConsumer(
            config=kafka,
            topic=kafka.mail_topic,
            group_id=kafka.mail_consumer_group,
            handler=self.handler.handle_record,
            consumer_factory=consumer_factory,
        )
        self.topic_status: Optional[TopicStatus] = None

        logger.info(
            "Initialized mail worker",
            extra={
                "topic": kafka.mail_topic,
                "group_id": kafka.mail_consumer_group,
                "smtp_host": config.smtp.host,
            },
        )

    async def start(self) -> None:
        """
        Provision the topic and consume until stopped.

        Raises:
            BrokerConnectionError: If the topic cannot be ensured or the
                consumer cannot connect or subscribe
        """
        logger.info("Starting mail worker")
        kafka = self.config.kafka

        self.topic_status = await self.broker.ensure_topic(
            kafka.mail_topic,
            partitions=kafka.mail_topic_partitions,
            replication_factor=kafka.mail_topic_replication_factor,
        )
        if not self.topic_status.is_available:
            logger.error(
                "Topic could not be ensured, mail worker not started",
                extra={"topic": kafka.mail_topic},
            )
            raise BrokerConnectionError(
                f"Topic {kafka.mail_topic} is not available",
                context={"topic": kafka.mail_topic},
            )

        await self.consumer.run()

    async def request_shutdown(self) -> None:
        """Stop after the record currently being delivered."""
        logger.info("Mail worker shutdown requested")
        await self.consumer.stop()

    async def stop(self) -> None:
        """
        Stop the worker. Safe to call multiple times.
        """
        logger.info("Stopping mail worker")
        await self.consumer.stop()

    @property
    def is_running(self) -> bool:
        return self.consumer.is_running


__all__ = ["MailWorker"]
