"""
Integration tests against a real Kafka broker.

Run with: pytest -m integration
"""

import asyncio
import pytest
from aiokafka.admin import AIOKafkaAdminClient

from mail_fakes import RecordingTransport, wait_until
from notification_pipeline.broker import BrokerConnectionManager, TopicStatus
from notification_pipeline.publisher import NotificationPublisher
from notification_pipeline.workers import MailWorker

pytestmark = pytest.mark.integration


@pytest.mark.asyncio
async def test_ensure_topic_is_idempotent(integration_config, unique_topic):
    manager = BrokerConnectionManager(integration_config.kafka)

    first = await manager.ensure_topic(unique_topic, 1, 1)
    second = await manager.ensure_topic(unique_topic, 1, 1)

    assert first == TopicStatus.CREATED
    assert second == TopicStatus.EXISTS

    admin = AIOKafkaAdminClient(bootstrap_servers=integration_config.kafka.bootstrap_servers)
    await admin.start()
    try:
        assert unique_topic in await admin.list_topics()
    finally:
        await admin.close()


@pytest.mark.asyncio
async def test_publish_consume_deliver(integration_config, unique_topic):
    transport = RecordingTransport()
    worker = MailWorker(integration_config, transport=transport)
    worker_task = asyncio.create_task(worker.start())
    await wait_until(lambda: worker.is_running, timeout=30.0)

    publisher = await NotificationPublisher.connect(
        BrokerConnectionManager(integration_config.kafka)
    )
    try:
        result = await publisher.publish(
            unique_topic,
            {"to": "user@example.com", "subject": "Welcome", "html": "<p>Hi</p>"},
        )
        assert result.published

        await wait_until(lambda: transport.sent, timeout=30.0)
    finally:
        await publisher.close()
        await worker.stop()
        await worker_task

    assert len(transport.sent) == 1
    assert transport.sent[0].to == "user@example.com"


@pytest.mark.asyncio
async def test_messages_consumed_in_publish_order(integration_config, unique_topic):
    transport = RecordingTransport()
    worker = MailWorker(integration_config, transport=transport)
    worker_task = asyncio.create_task(worker.start())
    await wait_until(lambda: worker.is_running, timeout=30.0)

    publisher = await NotificationPublisher.connect(
        BrokerConnectionManager(integration_config.kafka)
    )
    try:
        await publisher.publish(unique_topic, {"subject": "missing recipient"})
        for i in range(3):
            await publisher.publish(
                unique_topic,
                {"to": f"user{i}@example.com", "subject": f"#{i}", "html": ""},
            )
        await wait_until(lambda: len(transport.sent) == 3, timeout=30.0)
    finally:
        await publisher.close()
        await worker.stop()
        await worker_task

    assert [m.subject for m in transport.sent] == ["#0", "#1", "#2"]
