"""
Prometheus metrics for notification pipeline monitoring.

Provides instrumentation for:
- Topic provisioning outcomes
- Envelope publish rates and failures
- Message consumption and handler failures
- Email delivery outcomes and latency
- Broker connection status
"""

from prometheus_client import Counter, Gauge, Histogram

# Topic provisioning
topic_provisioning_total = Counter(
    "notifications_topic_provisioning_total",
    "Topic ensure operations by outcome",
    ["topic", "result"],  # result: created, exists, failed
)

# Publish metrics
messages_published_total = Counter(
    "notifications_messages_published_total",
    "Total number of envelopes published to Kafka topics",
    ["topic", "status"],  # status: success, error, skipped
)

messages_published_bytes = Counter(
    "notifications_messages_published_bytes_total",
    "Total bytes of envelope data published to Kafka topics",
    ["topic"],
)

producer_errors_total = Counter(
    "notifications_producer_errors_total",
    "Total number of producer errors",
    ["topic", "error_type"],
)

# Consumption metrics
messages_consumed_total = Counter(
    "notifications_messages_consumed_total",
    "Total number of records consumed from Kafka topics",
    ["topic", "consumer_group", "status"],  # status: success, error
)

handler_errors_total = Counter(
    "notifications_handler_errors_total",
    "Exceptions raised by the message handler",
    ["topic", "consumer_group", "error_type"],
)

# Delivery metrics
emails_delivered_total = Counter(
    "notifications_emails_total",
    "Email delivery outcomes",
    ["status"],  # status: sent, failed, invalid, duplicate
)

delivery_errors_total = Counter(
    "notifications_delivery_errors_total",
    "Email delivery failures by category",
    ["error_category"],
)

delivery_duration_seconds = Histogram(
    "notifications_delivery_duration_seconds",
    "Time spent in the mail transport per email",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0),
)

# Connection health metrics
kafka_connection_status = Gauge(
    "notifications_kafka_connection_status",
    "Kafka connection status (1=connected, 0=disconnected)",
    ["component"],  # component: producer, consumer
)


def record_topic_provisioning(topic: str, result: str) -> None:
    """
    Record a topic ensure outcome.

    Args:
        topic: Kafka topic name
        result: created, exists or failed
    """
    topic_provisioning_total.labels(topic=topic, result=result).inc()


def record_message_published(topic: str, message_bytes: int, status: str) -> None:
    """
    Record a publish attempt.

    Args:
        topic: Kafka topic name
        message_bytes: Size of the serialized envelope in bytes
        status: success, error or skipped (no producer connected)
    """
    messages_published_total.labels(topic=topic, status=status).inc()
    if status == "success":
        messages_published_bytes.labels(topic=topic).inc(message_bytes)


def record_producer_error(topic: str, error_type: str) -> None:
    producer_errors_total.labels(topic=topic, error_type=error_type).inc()


def record_message_consumed(topic: str, consumer_group: str, success: bool = True) -> None:
    """
    Record a consumed record and whether its handler completed.

    Args:
        topic: Kafka topic name
        consumer_group: Consumer group ID
        success: False when the handler raised
    """
    status = "success" if success else "error"
    messages_consumed_total.labels(
        topic=topic, consumer_group=consumer_group, status=status
    ).inc()


def record_handler_error(topic: str, consumer_group: str, error_type: str) -> None:
    handler_errors_total.labels(
        topic=topic, consumer_group=consumer_group, error_type=error_type
    ).inc()


def record_email_outcome(status: str) -> None:
    emails_delivered_total.labels(status=status).inc()


def record_delivery_error(error_category: str) -> None:
    delivery_errors_total.labels(error_category=error_category).inc()


def update_connection_status(component: str, connected: bool) -> None:
    """
    Update Kafka connection status.

    Args:
        component: Component name (producer, consumer)
        connected: Whether the component is connected
    """
    kafka_connection_status.labels(component=component).set(1 if connected else 0)


__all__ = [
    # Metrics
    "topic_provisioning_total",
    "messages_published_total",
    "messages_published_bytes",
    "producer_errors_total",
    "messages_consumed_total",
    "handler_errors_total",
    "emails_delivered_total",
    "delivery_errors_total",
    "delivery_duration_seconds",
    "kafka_connection_status",
    # Helper functions
    "record_topic_provisioning",
    "record_message_published",
    "record_producer_error",
    "record_message_consumed",
    "record_handler_error",
    "record_email_outcome",
    "record_delivery_error",
    "update_connection_status",
]
