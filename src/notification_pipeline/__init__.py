"""Notification pipeline - Kafka-backed email delivery for NextHire services."""

__version__ = "1.0.0"

__all__ = ["__version__"]
