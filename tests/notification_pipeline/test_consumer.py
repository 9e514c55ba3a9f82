"""Tests for the notification consumer loop."""

import asyncio

import pytest

from mail_fakes import wait_until
from notification_pipeline.consumer import ConsumerState, NotificationConsumer
from notification_pipeline.exceptions import BrokerConnectionError


def make_consumer(broker, kafka_config, handler, topic="send-mail"):
    return NotificationConsumer(
        config=kafka_config,
        topic=topic,
        group_id="mail-service-group",
        handler=handler,
        consumer_factory=broker.consumer_factory,
    )


async def start_in_background(consumer):
    task = asyncio.create_task(consumer.run())
    await wait_until(lambda: consumer.state == ConsumerState.RUNNING or task.done())
    return task


class TestConsumerInit:
    def test_requires_topic(self, kafka_config):
        with pytest.raises(ValueError, match="topic"):
            NotificationConsumer(kafka_config, "", "group", handler=None)

    def test_requires_group(self, kafka_config):
        with pytest.raises(ValueError, match="consumer group"):
            NotificationConsumer(kafka_config, "send-mail", "", handler=None)

    def test_starts_disconnected(self, broker, kafka_config):
        consumer = make_consumer(broker, kafka_config, handler=None)
        assert consumer.state == ConsumerState.DISCONNECTED
        assert not consumer.is_running


class TestConsumerLifecycle:
    @pytest.mark.asyncio
    async def test_run_reaches_running_and_stops(self, broker, kafka_config):
        async def handler(record):
            pass

        consumer = make_consumer(broker, kafka_config, handler)
        task = await start_in_background(consumer)

        assert consumer.is_running
        client = broker.clients[0]
        assert client.kwargs["group_id"] == "mail-service-group"
        assert client.kwargs["auto_offset_reset"] == "latest"
        assert client.kwargs["enable_auto_commit"] is True

        await consumer.stop()
        await asyncio.wait_for(task, 1.0)

        assert consumer.state == ConsumerState.STOPPED
        assert client.closed

    @pytest.mark.asyncio
    async def test_logs_listening_message(self, broker, kafka_config, caplog):
        caplog.set_level("INFO", logger="notification_pipeline.consumer")

        async def handler(record):
            pass

        consumer = make_consumer(broker, kafka_config, handler)
        task = await start_in_background(consumer)
        await consumer.stop()
        await task

        assert "Mail consumer is listening to topic: send-mail" in caplog.text

    @pytest.mark.asyncio
    async def test_startup_failure_raises(self, broker, kafka_config, caplog):
        broker.available = False

        async def handler(record):
            pass

        consumer = make_consumer(broker, kafka_config, handler)

        with pytest.raises(BrokerConnectionError) as exc_info:
            await consumer.run()

        assert consumer.state == ConsumerState.FAILED
        assert exc_info.value.context["topic"] == "send-mail"
        assert "Mail consumer failed to start" in caplog.text

    @pytest.mark.asyncio
    async def test_duplicate_run_ignored(self, broker, kafka_config):
        async def handler(record):
            pass

        consumer = make_consumer(broker, kafka_config, handler)
        task = await start_in_background(consumer)

        await consumer.run()

        assert len(broker.clients) == 1
        await consumer.stop()
        await task

    @pytest.mark.asyncio
    async def test_stop_before_run_is_noop(self, broker, kafka_config):
        consumer = make_consumer(broker, kafka_config, handler=None)
        await consumer.stop()
        assert consumer.state == ConsumerState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_stop_from_handler_does_not_deadlock(self, broker, kafka_config):
        consumer = None

        async def handler(record):
            await consumer.stop()

        consumer = make_consumer(broker, kafka_config, handler)
        task = await start_in_background(consumer)
        broker.append("send-mail", b"{}")

        await asyncio.wait_for(task, 1.0)
        assert consumer.state == ConsumerState.STOPPED


class TestConsumerDelivery:
    @pytest.mark.asyncio
    async def test_only_messages_after_subscription(self, broker, kafka_config):
        """A fresh group starts from the latest offset."""
        received = []

        async def handler(record):
            received.append(record.value)

        broker.append("send-mail", b"old")
        consumer = make_consumer(broker, kafka_config, handler)
        task = await start_in_background(consumer)

        broker.append("send-mail", b"new")
        await wait_until(lambda: received)
        await consumer.stop()
        await task

        assert received == [b"new"]

    @pytest.mark.asyncio
    async def test_records_handled_in_offset_order(self, broker, kafka_config):
        received = []

        async def handler(record):
            received.append(record.offset)

        consumer = make_consumer(broker, kafka_config, handler)
        task = await start_in_background(consumer)

        for i in range(5):
            broker.append("send-mail", f"m{i}".encode())
        await wait_until(lambda: len(received) == 5)
        await consumer.stop()
        await task

        assert received == [0, 1, 2, 3, 4]

    @pytest.mark.asyncio
    async def test_handler_failure_does_not_stop_loop(self, broker, kafka_config, caplog):
        received = []

        async def handler(record):
            if record.value == b"boom":
                raise RuntimeError("handler exploded")
            received.append(record.value)

        consumer = make_consumer(broker, kafka_config, handler)
        task = await start_in_background(consumer)

        broker.append("send-mail", b"boom")
        broker.append("send-mail", b"after")
        await wait_until(lambda: received)
        await consumer.stop()
        await task

        assert received == [b"after"]
        assert consumer.messages_failed == 1
        assert consumer.messages_handled == 1
        assert "Message handler failed, continuing with next message" in caplog.text

    @pytest.mark.asyncio
    async def test_fetch_error_is_retried(self, broker, kafka_config, monkeypatch):
        monkeypatch.setattr("notification_pipeline.consumer.FETCH_ERROR_BACKOFF_SECONDS", 0.01)
        received = []

        async def handler(record):
            received.append(record.value)

        consumer = make_consumer(broker, kafka_config, handler)
        task = await start_in_background(consumer)

        client = broker.clients[0]
        real_getmany = client.getmany
        calls = {"n": 0}

        async def flaky_getmany(timeout_ms=0):
            calls["n"] += 1
            if calls["n"] == 1:
                raise RuntimeError("fetch failed")
            return await real_getmany(timeout_ms=timeout_ms)

        client.getmany = flaky_getmany
        broker.append("send-mail", b"payload")

        await wait_until(lambda: received)
        await consumer.stop()
        await task

        assert received == [b"payload"]
