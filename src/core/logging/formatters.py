"""Log formatters for JSON and console output."""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from core.logging.context import get_log_context


def mask_email(address: str) -> str:
    """Mask the local part of an email address (jane@x.com -> j***@x.com)."""
    local, sep, domain = address.partition("@")
    if not sep or not local:
        return address
    return f"{local[0]}***@{domain}"


class JSONFormatter(logging.Formatter):
    """
    JSON log formatter with context injection.

    Produces one JSON object per line for easy parsing with jq/grep.
    Recipient addresses are masked before logging.
    """

    # Fields to extract from LogRecord extras
    EXTRA_FIELDS = [
        # Kafka
        "topic",
        "partition",
        "offset",
        "group_id",
        "client_id",
        "bootstrap_servers",
        "num_partitions",
        "replication_factor",
        "topic_status",
        "consumer_state",
        # Delivery
        "recipient",
        "subject",
        "idempotency_key",
        "smtp_host",
        "smtp_code",
        # Errors and timing
        "error_category",
        "error_message",
        "error_type",
        "duration_ms",
        "attempt",
        "max_attempts",
        "delay_seconds",
        "value_size",
    ]

    # Fields that contain email addresses and should be masked
    EMAIL_FIELDS = ["recipient"]

    def _sanitize_value(self, key: str, value: Any) -> Any:
        if key in self.EMAIL_FIELDS and isinstance(value, str):
            return mask_email(value)
        return value

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "ts": datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3]
            + "Z",
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }

        ctx = get_log_context()
        if ctx["domain"]:
            log_entry["domain"] = ctx["domain"]
        if ctx["stage"]:
            log_entry["stage"] = ctx["stage"]
        if ctx["worker_id"]:
            log_entry["worker_id"] = ctx["worker_id"]

        # Add source location for DEBUG/ERROR
        if record.levelno in (logging.DEBUG, logging.ERROR, logging.CRITICAL):
            log_entry["file"] = f"{record.filename}:{record.lineno}"

        for field in self.EXTRA_FIELDS:
            value = getattr(record, field, None)
            if value is not None:
                log_entry[field] = self._sanitize_value(field, value)

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_entry, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter.

    Includes context when available.
    """

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_log_context()

        parts = [
            datetime.now().strftime("%Y-%m-%d %H:%M:%S"),
            record.levelname,
        ]

        if ctx["domain"]:
            parts.append(f"[{ctx['domain']}]")
        if ctx["stage"]:
            parts.append(f"[{ctx['stage']}]")

        prefix = " - ".join(parts)
        message = f"{prefix} - {record.getMessage()}"

        topic = getattr(record, "topic", None)
        if topic:
            message = f"{message} (topic={topic})"

        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return message
