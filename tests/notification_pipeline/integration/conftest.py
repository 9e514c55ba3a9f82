"""
Pytest fixtures for notification pipeline integration tests.

Uses Testcontainers to start a real Kafka instance in Docker. The container
runs for the whole session and is shared across tests.
"""

from typing import Generator

import pytest
from testcontainers.kafka import KafkaContainer

from notification_pipeline.config import KafkaConfig, NotificationConfig


@pytest.fixture(scope="session")
def kafka_container() -> Generator[KafkaContainer, None, None]:
    kafka = KafkaContainer()
    kafka.start()

    yield kafka

    kafka.stop()


@pytest.fixture
def unique_topic(request) -> str:
    """Topic name derived from the test name so tests don't share records."""
    safe_name = "".join(c if c.isalnum() else "-" for c in request.node.name)
    return f"send-mail-{safe_name.lower()[:80]}"


@pytest.fixture
def integration_config(kafka_container: KafkaContainer, unique_topic: str) -> NotificationConfig:
    kafka = KafkaConfig(
        bootstrap_servers=kafka_container.get_bootstrap_server(),
        mail_topic=unique_topic,
        mail_consumer_group=f"{unique_topic}-group",
        # Topic is unique per test
        auto_offset_reset="earliest",
        fetch_timeout_ms=200,
        connect_max_attempts=3,
    )
    return NotificationConfig(kafka=kafka)
