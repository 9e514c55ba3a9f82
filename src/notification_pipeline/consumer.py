"""
Kafka consumer loop for notification delivery.

Provides:
- Explicit lifecycle state (DISCONNECTED -> CONNECTED -> SUBSCRIBED -> RUNNING)
- Latest-offset subscription: a fresh consumer group only sees messages
  produced after it subscribed
- Per-message failure isolation: a handler exception is logged and the loop
  moves on to the next record
- Client auto-commit, giving at-least-once delivery (a crash between receipt
  and commit may redeliver a record)
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.structs import ConsumerRecord

from notification_pipeline.broker import start_client
from notification_pipeline.config import KafkaConfig
from notification_pipeline.exceptions import BrokerConnectionError
from notification_pipeline.metrics import (
    record_handler_error,
    record_message_consumed,
    update_connection_status,
)

logger = logging.getLogger(__name__)

MessageHandler = Callable[[ConsumerRecord], Awaitable[Any]]

# Pause after a failed fetch before polling again
FETCH_ERROR_BACKOFF_SECONDS = 1.0


class ConsumerState(str, Enum):
    """Consumer lifecycle states."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    SUBSCRIBED = "subscribed"
    RUNNING = "running"
    STOPPED = "stopped"
    FAILED = "failed"


class NotificationConsumer:
    """
    Long-running consumer that feeds each record to a handler.

    One instance per mail-delivery process. Horizontal scaling is done by
    running more processes in the same consumer group, never by handling one
    partition's records concurrently.

    Usage:
        >>> async def handle(record: ConsumerRecord):
        ...     print(record.value)
        >>>
        >>> consumer = NotificationConsumer(
        ...     config=config,
        ...     topic="send-mail",
        ...     group_id="mail-service-group",
        ...     handler=handle,
        ... )
        >>> await consumer.run()  # until stop() is called
    """

    def __init__(
        self,
        config: KafkaConfig,
        topic: str,
        group_id: str,
        handler: MessageHandler,
        consumer_factory: Optional[Callable[..., Any]] = None,
    ):
        """
        Initialize the consumer.

        Args:
            config: Kafka configuration
            topic: Topic to subscribe to
            group_id: Consumer group ID
            handler: Async callback invoked once per record
            consumer_factory: Client factory (defaults to AIOKafkaConsumer)
        """
        if not topic:
            raise ValueError("A topic must be specified")
        if not group_id:
            raise ValueError("A consumer group must be specified")

        self.config = config
        self.topic = topic
        self.group_id = group_id
        self.handler = handler
        self._consumer_factory = consumer_factory or AIOKafkaConsumer
        self._consumer: Optional[Any] = None
        self._state = ConsumerState.DISCONNECTED
        self._running = False
        self._stopped = asyncio.Event()
        self._run_task: Optional[asyncio.Task] = None

        self.messages_handled = 0
        self.messages_failed = 0

    @property
    def state(self) -> ConsumerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state == ConsumerState.RUNNING and self._running

    def _set_state(self, state: ConsumerState) -> None:
        self._state = state
        logger.debug(
            f"Consumer state -> {state.value}",
            extra={"topic": self.topic, "group_id": self.group_id, "consumer_state": state.value},
        )

    async def run(self) -> None:
        """
        Connect, subscribe and process records until stop() is called.

        Raises:
            BrokerConnectionError: If the client cannot connect or subscribe.
                This is fatal to the consumer; nothing restarts it.
        """
        if self._state != ConsumerState.DISCONNECTED:
            logger.warning(
                "Consumer already started, ignoring duplicate run call",
                extra={"consumer_state": self._state.value},
            )
            return

        logger.info(
            "Starting Kafka consumer",
            extra={"topic": self.topic, "group_id": self.group_id},
        )
        self._running = True
        self._run_task = asyncio.current_task()

        try:
            await self._connect()
            self._subscribe()
        except asyncio.CancelledError:
            await self._close()
            self._set_state(ConsumerState.STOPPED)
            raise
        except Exception as e:
            self._running = False
            self._set_state(ConsumerState.FAILED)
            await self._close()
            logger.error(
                "Mail consumer failed to start",
                extra={
                    "topic": self.topic,
                    "group_id": self.group_id,
                    "bootstrap_servers": self.config.bootstrap_servers,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            raise BrokerConnectionError(
                "Consumer failed to start",
                cause=e,
                context={"topic": self.topic, "group_id": self.group_id},
            ) from e

        if not self._running:
            # stop() arrived while connecting
            await self._close()
            self._set_state(ConsumerState.STOPPED)
            return

        self._set_state(ConsumerState.RUNNING)
        logger.info(
            f"Mail consumer is listening to topic: {self.topic}",
            extra={"topic": self.topic, "group_id": self.group_id},
        )

        try:
            await self._consume_loop()
        except asyncio.CancelledError:
            logger.info("Consumer loop cancelled, shutting down")
            raise
        finally:
            self._running = False
            await self._close()
            self._set_state(ConsumerState.STOPPED)
            self._stopped.set()

    async def _connect(self) -> None:
        self._consumer = await start_client(
            self._consumer_factory,
            self.config.connect_retry,
            operation="Kafka consumer connect",
            group_id=self.group_id,
            enable_auto_commit=self.config.enable_auto_commit,
            auto_commit_interval_ms=self.config.auto_commit_interval_ms,
            auto_offset_reset=self.config.auto_offset_reset,
            session_timeout_ms=self.config.session_timeout_ms,
            request_timeout_ms=self.config.request_timeout_ms,
            **self.config.client_options(),
        )
        update_connection_status("consumer", connected=True)
        self._set_state(ConsumerState.CONNECTED)

    def _subscribe(self) -> None:
        self._consumer.subscribe(topics=[self.topic])
        self._set_state(ConsumerState.SUBSCRIBED)

    async def _consume_loop(self) -> None:
        """
        Fetch records and hand them to the handler one at a time.

        Records of a partition are handled in offset order. Fetch errors are
        logged and retried after a short pause.
        """
        while self._running and self._consumer is not None:
            try:
                data = await self._consumer.getmany(
                    timeout_ms=self.config.fetch_timeout_ms
                )
            except asyncio.CancelledError:
                raise
            except Exception as e:
                if not self._running:
                    break
                logger.error(
                    "Error fetching records",
                    extra={"topic": self.topic, "error_message": str(e)},
                    exc_info=True,
                )
                await asyncio.sleep(FETCH_ERROR_BACKOFF_SECONDS)
                continue

            for _topic_partition, records in data.items():
                for record in records:
                    if not self._running:
                        logger.info("Consumer stopped, breaking message loop")
                        return
                    await self._process_message(record)

    async def _process_message(self, record: ConsumerRecord) -> None:
        """Run the handler for one record inside a failure boundary."""
        start = time.perf_counter()
        try:
            await self.handler(record)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.messages_failed += 1
            record_message_consumed(record.topic, self.group_id, success=False)
            record_handler_error(record.topic, self.group_id, type(e).__name__)
            logger.error(
                "Message handler failed, continuing with next message",
                extra={
                    "topic": record.topic,
                    "partition": record.partition,
                    "offset": record.offset,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                exc_info=True,
            )
            return

        self.messages_handled += 1
        record_message_consumed(record.topic, self.group_id, success=True)
        logger.debug(
            "Message processed",
            extra={
                "topic": record.topic,
                "partition": record.partition,
                "offset": record.offset,
                "duration_ms": round((time.perf_counter() - start) * 1000, 2),
            },
        )

    async def stop(self) -> None:
        """
        Stop consuming and close the client.

        Waits for the record being handled to finish. Safe to call multiple
        times and before run().
        """
        if not self._running:
            logger.debug("Consumer not running or already stopped")
            return

        logger.info("Stopping Kafka consumer", extra={"topic": self.topic})
        self._running = False

        # The handler itself may call stop(); waiting there would deadlock
        if (
            self._state == ConsumerState.RUNNING
            and asyncio.current_task() is not self._run_task
        ):
            await self._stopped.wait()

    async def _close(self) -> None:
        if self._consumer is None:
            return

        consumer, self._consumer = self._consumer, None
        try:
            await consumer.stop()
            logger.info("Kafka consumer stopped")
        except Exception as e:
            logger.error(
                "Error stopping Kafka consumer",
                extra={"error_message": str(e)},
                exc_info=True,
            )
        finally:
            update_connection_status("consumer", connected=False)


__all__ = [
    "ConsumerState",
    "MessageHandler",
    "NotificationConsumer",
]
