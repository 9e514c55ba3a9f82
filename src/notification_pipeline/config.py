"""Notification pipeline configuration from config.yaml and environment variables.

Configuration priority (highest to lowest):
    1. Environment variables
    2. config.yaml file (under 'kafka:', 'smtp:' and 'delivery:' keys)
    3. Dataclass defaults
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from core.errors import ConfigurationError
from core.resilience import RetryConfig

# Default config path: config.yaml in src/ directory
DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config.yaml"

MAIL_TOPIC = "send-mail"
MAIL_CONSUMER_GROUP = "mail-service-group"

_TRUE_VALUES = ("true", "1", "yes", "on")


def _get(env_name: str, data: Dict[str, Any], key: str, default: Any) -> Any:
    """Environment variable, then yaml value, then default."""
    value = os.getenv(env_name)
    if value is not None and value != "":
        return value
    return data.get(key, default)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE_VALUES


def _as_optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _as_acks(value: Any) -> Any:
    """Producer acks: "all" or an integer (0, 1, -1)."""
    if str(value).strip().lower() == "all":
        return "all"
    return int(value)


@dataclass
class KafkaConfig:
    """Kafka connection and behavior configuration.

    All timing values in milliseconds unless otherwise noted.
    """

    # Connection
    bootstrap_servers: str = "localhost:9092"
    client_id: str = "notification-service"
    security_protocol: str = "PLAINTEXT"
    sasl_mechanism: str = ""

    # SASL_PLAIN credentials
    sasl_plain_username: str = ""
    sasl_plain_password: str = ""

    # Mail topic provisioning
    mail_topic: str = MAIL_TOPIC
    mail_topic_partitions: int = 1
    mail_topic_replication_factor: int = 1

    # Consumer defaults: only messages produced after subscription,
    # offsets committed by the client
    mail_consumer_group: str = MAIL_CONSUMER_GROUP
    auto_offset_reset: str = "latest"
    enable_auto_commit: bool = True
    auto_commit_interval_ms: int = 5000
    session_timeout_ms: int = 30000
    fetch_timeout_ms: int = 1000

    # Producer defaults
    acks: Any = 1
    request_timeout_ms: int = 30000
    send_timeout_seconds: Optional[float] = None

    # Connect attempts (1 = single attempt, no backoff)
    connect_max_attempts: int = 1
    connect_backoff_base_seconds: float = 1.0
    connect_backoff_max_seconds: float = 30.0

    def __post_init__(self):
        if not self.bootstrap_servers:
            raise ConfigurationError("Kafka bootstrap servers must not be empty")
        if self.mail_topic_partitions < 1:
            raise ConfigurationError("Mail topic needs at least one partition")
        if self.mail_topic_replication_factor < 1:
            raise ConfigurationError("Replication factor must be at least 1")
        if self.auto_offset_reset not in ("latest", "earliest"):
            raise ConfigurationError(
                f"Unsupported auto_offset_reset: {self.auto_offset_reset}"
            )

    @property
    def connect_retry(self) -> RetryConfig:
        """Retry policy for admin/producer/consumer connects."""
        return RetryConfig(
            max_attempts=self.connect_max_attempts,
            base_delay=self.connect_backoff_base_seconds,
            max_delay=self.connect_backoff_max_seconds,
        )

    def client_options(self) -> Dict[str, Any]:
        """Connection options shared by admin, producer and consumer clients."""
        options: Dict[str, Any] = {
            "bootstrap_servers": self.bootstrap_servers,
            "client_id": self.client_id,
            "security_protocol": self.security_protocol,
        }
        if self.sasl_mechanism:
            options["sasl_mechanism"] = self.sasl_mechanism
            options["sasl_plain_username"] = self.sasl_plain_username
            options["sasl_plain_password"] = self.sasl_plain_password
        return options

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "KafkaConfig":
        """Build from a yaml 'kafka:' section with environment overrides.

        Environment variables (all optional):
            KAFKA_BOOTSTRAP_SERVERS: Broker addresses (falls back to KAFKA_BROKER,
                then localhost:9092)
            KAFKA_CLIENT_ID: Client identity (default: notification-service)
            KAFKA_SECURITY_PROTOCOL: PLAINTEXT (default), SASL_SSL, ...
            KAFKA_SASL_MECHANISM: PLAIN, SCRAM-SHA-256, ... (default: none)
            KAFKA_SASL_PLAIN_USERNAME / KAFKA_SASL_PLAIN_PASSWORD
            KAFKA_MAIL_TOPIC: send-mail (default)
            KAFKA_MAIL_TOPIC_PARTITIONS: 1 (default)
            KAFKA_MAIL_TOPIC_REPLICATION_FACTOR: 1 (default)
            KAFKA_MAIL_CONSUMER_GROUP: mail-service-group (default)
            KAFKA_AUTO_OFFSET_RESET: latest (default) or earliest
            KAFKA_ENABLE_AUTO_COMMIT: true (default)
            KAFKA_AUTO_COMMIT_INTERVAL_MS: 5000 (default)
            KAFKA_SESSION_TIMEOUT_MS: 30000 (default)
            KAFKA_FETCH_TIMEOUT_MS: 1000 (default)
            KAFKA_ACKS: 1 (default), 0, -1 or all
            KAFKA_REQUEST_TIMEOUT_MS: 30000 (default)
            KAFKA_CONNECT_MAX_ATTEMPTS: 1 (default)
            KAFKA_SEND_TIMEOUT_SECONDS: unset (default, no bound)
        """
        data = data or {}
        bootstrap_servers = (
            os.getenv("KAFKA_BOOTSTRAP_SERVERS")
            or os.getenv("KAFKA_BROKER")
            or data.get("bootstrap_servers", "localhost:9092")
        )

        return cls(
            bootstrap_servers=bootstrap_servers,
            client_id=_get("KAFKA_CLIENT_ID", data, "client_id", "notification-service"),
            security_protocol=_get(
                "KAFKA_SECURITY_PROTOCOL", data, "security_protocol", "PLAINTEXT"
            ),
            sasl_mechanism=_get("KAFKA_SASL_MECHANISM", data, "sasl_mechanism", ""),
            sasl_plain_username=_get(
                "KAFKA_SASL_PLAIN_USERNAME", data, "sasl_plain_username", ""
            ),
            sasl_plain_password=_get(
                "KAFKA_SASL_PLAIN_PASSWORD", data, "sasl_plain_password", ""
            ),
            mail_topic=_get("KAFKA_MAIL_TOPIC", data, "mail_topic", MAIL_TOPIC),
            mail_topic_partitions=int(
                _get("KAFKA_MAIL_TOPIC_PARTITIONS", data, "mail_topic_partitions", 1)
            ),
            mail_topic_replication_factor=int(
                _get(
                    "KAFKA_MAIL_TOPIC_REPLICATION_FACTOR",
                    data,
                    "mail_topic_replication_factor",
                    1,
                )
            ),
            mail_consumer_group=_get(
                "KAFKA_MAIL_CONSUMER_GROUP", data, "mail_consumer_group", MAIL_CONSUMER_GROUP
            ),
            auto_offset_reset=_get(
                "KAFKA_AUTO_OFFSET_RESET", data, "auto_offset_reset", "latest"
            ),
            enable_auto_commit=_as_bool(
                _get("KAFKA_ENABLE_AUTO_COMMIT", data, "enable_auto_commit", True)
            ),
            auto_commit_interval_ms=int(
                _get(
                    "KAFKA_AUTO_COMMIT_INTERVAL_MS", data, "auto_commit_interval_ms", 5000
                )
            ),
            session_timeout_ms=int(
                _get("KAFKA_SESSION_TIMEOUT_MS", data, "session_timeout_ms", 30000)
            ),
            fetch_timeout_ms=int(
                _get("KAFKA_FETCH_TIMEOUT_MS", data, "fetch_timeout_ms", 1000)
            ),
            acks=_as_acks(_get("KAFKA_ACKS", data, "acks", 1)),
            request_timeout_ms=int(
                _get("KAFKA_REQUEST_TIMEOUT_MS", data, "request_timeout_ms", 30000)
            ),
            send_timeout_seconds=_as_optional_float(
                _get("KAFKA_SEND_TIMEOUT_SECONDS", data, "send_timeout_seconds", None)
            ),
            connect_max_attempts=int(
                _get("KAFKA_CONNECT_MAX_ATTEMPTS", data, "connect_max_attempts", 1)
            ),
            connect_backoff_base_seconds=float(
                _get(
                    "KAFKA_CONNECT_BACKOFF_BASE_SECONDS",
                    data,
                    "connect_backoff_base_seconds",
                    1.0,
                )
            ),
            connect_backoff_max_seconds=float(
                _get(
                    "KAFKA_CONNECT_BACKOFF_MAX_SECONDS",
                    data,
                    "connect_backoff_max_seconds",
                    30.0,
                )
            ),
        )

    @classmethod
    def from_env(cls) -> "KafkaConfig":
        """Load configuration from environment variables only."""
        return cls.from_dict({})


@dataclass
class SmtpConfig:
    """Outbound mail server settings."""

    host: str = "smtp.gmail.com"
    port: int = 465
    secure: bool = True  # Implicit TLS (SMTPS)
    username: str = ""
    password: str = ""
    from_address: str = "NextHire <no-reply@nexthire.dev>"
    timeout_seconds: float = 30.0

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "SmtpConfig":
        """Build from a yaml 'smtp:' section with environment overrides.

        Environment variables (all optional):
            SMTP_HOST, SMTP_PORT, SMTP_SECURE, SMTP_USERNAME, SMTP_PASSWORD,
            MAIL_FROM, SMTP_TIMEOUT_SECONDS
        """
        data = data or {}
        return cls(
            host=_get("SMTP_HOST", data, "host", "smtp.gmail.com"),
            port=int(_get("SMTP_PORT", data, "port", 465)),
            secure=_as_bool(_get("SMTP_SECURE", data, "secure", True)),
            username=_get("SMTP_USERNAME", data, "username", ""),
            password=_get("SMTP_PASSWORD", data, "password", ""),
            from_address=_get(
                "MAIL_FROM", data, "from_address", "NextHire <no-reply@nexthire.dev>"
            ),
            timeout_seconds=float(
                _get("SMTP_TIMEOUT_SECONDS", data, "timeout_seconds", 30.0)
            ),
        )

    @classmethod
    def from_env(cls) -> "SmtpConfig":
        return cls.from_dict({})


@dataclass
class DeliveryConfig:
    """Delivery handler settings.

    dedup_ttl_seconds = 0 disables idempotency-key deduplication.
    """

    dedup_ttl_seconds: float = 3600.0
    dedup_max_entries: int = 10_000

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]] = None) -> "DeliveryConfig":
        data = data or {}
        return cls(
            dedup_ttl_seconds=float(
                _get("MAIL_DEDUP_TTL_SECONDS", data, "dedup_ttl_seconds", 3600.0)
            ),
            dedup_max_entries=int(
                _get("MAIL_DEDUP_MAX_ENTRIES", data, "dedup_max_entries", 10_000)
            ),
        )


@dataclass
class NotificationConfig:
    """Top-level configuration for publisher and mail worker processes."""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    delivery: DeliveryConfig = field(default_factory=DeliveryConfig)

    @classmethod
    def load_config(cls, config_path: Optional[Path] = None) -> "NotificationConfig":
        """Load configuration from config.yaml and environment variables.

        A missing config file is not an error; environment and defaults apply.
        """
        config_path = config_path or DEFAULT_CONFIG_PATH

        yaml_data: Dict[str, Any] = {}
        if config_path.exists():
            with open(config_path, "r") as f:
                yaml_data = yaml.safe_load(f) or {}
            if not isinstance(yaml_data, dict):
                raise ConfigurationError(
                    f"Config file {config_path} must contain a mapping"
                )

        return cls(
            kafka=KafkaConfig.from_dict(yaml_data.get("kafka", {})),
            smtp=SmtpConfig.from_dict(yaml_data.get("smtp", {})),
            delivery=DeliveryConfig.from_dict(yaml_data.get("delivery", {})),
        )
