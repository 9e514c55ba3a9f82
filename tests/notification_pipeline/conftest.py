"""
Pytest fixtures for notification pipeline unit tests.

Test doubles live in mail_fakes.py so test modules can import them.
"""

import pytest

from mail_fakes import InMemoryBroker, RecordingTransport
from notification_pipeline.config import DeliveryConfig, KafkaConfig, NotificationConfig


@pytest.fixture
def broker() -> InMemoryBroker:
    return InMemoryBroker()


@pytest.fixture
def kafka_config() -> KafkaConfig:
    """Defaults with a short fetch timeout for fast tests."""
    return KafkaConfig(fetch_timeout_ms=10)


@pytest.fixture
def notification_config(kafka_config: KafkaConfig) -> NotificationConfig:
    return NotificationConfig(kafka=kafka_config, delivery=DeliveryConfig())


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()
