"""
Broker connection management.

Owns the short-lived admin connection used for topic provisioning and the
creation of the long-lived producer client. Both operations tolerate broker
unavailability: failures are logged and reported through the return value so
the owning service keeps serving non-notification traffic.
"""

import logging
from enum import Enum
from typing import Any, Callable, Optional

from aiokafka import AIOKafkaProducer
from aiokafka.admin import AIOKafkaAdminClient, NewTopic
from aiokafka.errors import TopicAlreadyExistsError

from core.resilience import RetryConfig, retry_async
from notification_pipeline.config import KafkaConfig
from notification_pipeline.metrics import (
    record_topic_provisioning,
    update_connection_status,
)

logger = logging.getLogger(__name__)


class TopicStatus(str, Enum):
    """Outcome of ensure_topic."""

    CREATED = "created"
    EXISTS = "exists"
    FAILED = "failed"

    @property
    def is_available(self) -> bool:
        return self is not TopicStatus.FAILED


async def _discard(client: Any, close_method: str) -> None:
    try:
        await getattr(client, close_method)()
    except Exception as e:
        logger.debug(
            "Ignoring error while discarding Kafka client",
            extra={"error_message": str(e)},
        )


async def start_client(
    factory: Callable[..., Any],
    retry_config: RetryConfig,
    operation: str,
    close_method: str = "stop",
    **kwargs: Any,
) -> Any:
    """
    Build and start a Kafka client, retrying per retry_config.

    Each attempt uses a fresh client; a client that failed to start is
    discarded before the next attempt.

    Raises:
        The last start error once attempts are exhausted
    """

    async def _attempt() -> Any:
        client = factory(**kwargs)
        try:
            await client.start()
        except BaseException:
            await _discard(client, close_method)
            raise
        return client

    return await retry_async(_attempt, retry_config, operation=operation)


class BrokerConnectionManager:
    """
    Creates broker clients for one process.

    Usage:
        >>> manager = BrokerConnectionManager(KafkaConfig.from_env())
        >>> status = await manager.ensure_topic("send-mail", 1, 1)
        >>> producer = await manager.connect_producer()  # None if broker is down

    Client factories are injectable so tests can substitute in-memory fakes.
    """

    def __init__(
        self,
        config: KafkaConfig,
        retry_config: Optional[RetryConfig] = None,
        admin_factory: Optional[Callable[..., Any]] = None,
        producer_factory: Optional[Callable[..., Any]] = None,
    ):
        self.config = config
        self.retry_config = retry_config or config.connect_retry
        self._admin_factory = admin_factory or AIOKafkaAdminClient
        self._producer_factory = producer_factory or AIOKafkaProducer

    async def ensure_topic(
        self,
        name: str,
        partitions: int = 1,
        replication_factor: int = 1,
    ) -> TopicStatus:
        """
        Create `name` unless it already exists.

        The admin client is connected for this call only and always closed.
        A concurrent creation by another service surfaces as
        TopicAlreadyExistsError and counts as EXISTS.

        Returns:
            TopicStatus.CREATED, EXISTS, or FAILED (broker unreachable or
            creation rejected; logged, never raised)
        """
        log_extra = {
            "topic": name,
            "num_partitions": partitions,
            "replication_factor": replication_factor,
            "bootstrap_servers": self.config.bootstrap_servers,
        }
        admin = None

        try:
            admin = await start_client(
                self._admin_factory,
                self.retry_config,
                operation="Kafka admin connect",
                close_method="close",
                request_timeout_ms=self.config.request_timeout_ms,
                **self.config.client_options(),
            )

            existing = await admin.list_topics()
            if name in existing:
                status = TopicStatus.EXISTS
            else:
                try:
                    await admin.create_topics(
                        [
                            NewTopic(
                                name=name,
                                num_partitions=partitions,
                                replication_factor=replication_factor,
                            )
                        ]
                    )
                    status = TopicStatus.CREATED
                except TopicAlreadyExistsError:
                    status = TopicStatus.EXISTS

            logger.info(
                f"Kafka connected and topic ensured ({status.value})",
                extra={**log_extra, "topic_status": status.value},
            )

        except Exception as e:
            status = TopicStatus.FAILED
            logger.error(
                "Failed to ensure Kafka topic",
                extra={
                    **log_extra,
                    "error_message": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )

        finally:
            if admin is not None:
                await _discard(admin, "close")

        record_topic_provisioning(name, status.value)
        return status

    async def connect_producer(self) -> Optional[AIOKafkaProducer]:
        """
        Build and start a producer bound to this process.

        Returns:
            Started producer, or None if the broker could not be reached
        """
        try:
            producer = await start_client(
                self._producer_factory,
                self.retry_config,
                operation="Kafka producer connect",
                acks=self.config.acks,
                request_timeout_ms=self.config.request_timeout_ms,
                **self.config.client_options(),
            )
        except Exception as e:
            logger.error(
                "Failed to connect Kafka producer",
                extra={
                    "bootstrap_servers": self.config.bootstrap_servers,
                    "client_id": self.config.client_id,
                    "error_message": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            update_connection_status("producer", connected=False)
            return None

        update_connection_status("producer", connected=True)
        logger.info(
            "Kafka producer connected",
            extra={
                "bootstrap_servers": self.config.bootstrap_servers,
                "client_id": self.config.client_id,
            },
        )
        return producer


__all__ = [
    "BrokerConnectionManager",
    "TopicStatus",
    "start_client",
]
