"""Tests for MailWorker startup, delivery and shutdown."""

import asyncio

import pytest
from aiokafka.errors import PolicyViolationError

from mail_fakes import FakeConsumer, RecordingTransport, wait_until
from notification_pipeline.broker import TopicStatus
from notification_pipeline.config import DeliveryConfig
from notification_pipeline.consumer import ConsumerState
from notification_pipeline.exceptions import BrokerConnectionError
from notification_pipeline.mail import SmtpMailTransport
from notification_pipeline.schemas import MailEnvelope
from notification_pipeline.workers import MailWorker


def make_worker(broker, config, transport):
    return MailWorker(
        config,
        transport=transport,
        consumer_factory=broker.consumer_factory,
        admin_factory=broker.admin_factory,
    )


async def start_worker(worker):
    task = asyncio.create_task(worker.start())
    await wait_until(lambda: worker.is_running or task.done())
    return task


class TestMailWorkerInit:
    def test_defaults_to_smtp_transport(self, notification_config):
        worker = MailWorker(notification_config)
        assert isinstance(worker.transport, SmtpMailTransport)

    def test_dedup_enabled_by_default(self, notification_config, transport):
        worker = MailWorker(notification_config, transport=transport)
        assert worker.handler.deduplicator is not None

    def test_dedup_disabled_with_zero_ttl(self, notification_config, transport):
        notification_config.delivery = DeliveryConfig(dedup_ttl_seconds=0)
        worker = MailWorker(notification_config, transport=transport)
        assert worker.handler.deduplicator is None

    def test_consumer_bound_to_mail_topic(self, notification_config, transport):
        worker = MailWorker(notification_config, transport=transport)
        assert worker.consumer.topic == "send-mail"
        assert worker.consumer.group_id == "mail-service-group"


class TestMailWorkerRun:
    @pytest.mark.asyncio
    async def test_provisions_topic_then_consumes(self, broker, notification_config, transport):
        worker = make_worker(broker, notification_config, transport)
        task = await start_worker(worker)

        assert worker.topic_status == TopicStatus.CREATED
        assert worker.consumer.state == ConsumerState.RUNNING

        await worker.request_shutdown()
        await asyncio.wait_for(task, 1.0)
        assert worker.consumer.state == ConsumerState.STOPPED

    @pytest.mark.asyncio
    async def test_delivers_published_envelope(self, broker, notification_config, transport):
        worker = make_worker(broker, notification_config, transport)
        task = await start_worker(worker)

        broker.append(
            "send-mail",
            MailEnvelope(to="a@b.com", subject="Hi", html="<p>x</p>").to_bytes(),
        )
        await wait_until(lambda: transport.sent)
        await worker.stop()
        await task

        assert transport.sent[0].to == "a@b.com"
        assert transport.sent[0].from_address == notification_config.smtp.from_address

    @pytest.mark.asyncio
    async def test_malformed_then_valid_message(self, broker, notification_config, transport):
        worker = make_worker(broker, notification_config, transport)
        task = await start_worker(worker)

        broker.append("send-mail", b"definitely not json")
        broker.append(
            "send-mail",
            MailEnvelope(to="a@b.com", subject="Hi", html="").to_bytes(),
        )
        await wait_until(lambda: transport.sent)
        await worker.stop()
        await task

        assert [m.to for m in transport.sent] == ["a@b.com"]

    @pytest.mark.asyncio
    async def test_failed_delivery_does_not_block_next(self, broker, notification_config):
        transport = RecordingTransport(failures={"k@b.com": RuntimeError("smtp down")})
        worker = make_worker(broker, notification_config, transport)
        task = await start_worker(worker)

        for to in ("k@b.com", "k1@b.com"):
            broker.append(
                "send-mail", MailEnvelope(to=to, subject="S", html="").to_bytes()
            )
        await wait_until(lambda: transport.sent)
        await worker.stop()
        await task

        assert [m.to for m in transport.attempts] == ["k@b.com", "k1@b.com"]
        assert [m.to for m in transport.sent] == ["k1@b.com"]

    @pytest.mark.asyncio
    async def test_broker_down_fails_start(self, broker, notification_config, transport):
        broker.available = False
        worker = make_worker(broker, notification_config, transport)

        with pytest.raises(BrokerConnectionError):
            await worker.start()

        assert worker.topic_status == TopicStatus.FAILED
        assert worker.consumer.state == ConsumerState.DISCONNECTED

    @pytest.mark.asyncio
    async def test_rejected_topic_creation_fails_start(
        self, broker, notification_config, transport
    ):
        broker.create_error = PolicyViolationError()
        worker = make_worker(broker, notification_config, transport)

        with pytest.raises(BrokerConnectionError):
            await worker.start()

        assert worker.topic_status == TopicStatus.FAILED
        assert worker.consumer.state == ConsumerState.DISCONNECTED
        assert not any(isinstance(c, FakeConsumer) for c in broker.clients)

    @pytest.mark.asyncio
    async def test_stop_is_idempotent(self, broker, notification_config, transport):
        worker = make_worker(broker, notification_config, transport)
        task = await start_worker(worker)

        await worker.stop()
        await worker.stop()
        await task

        assert not worker.is_running
