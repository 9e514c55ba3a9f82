"""
Structured logging module.

Provides JSON logging with context propagation (worker, stage, domain)
across async boundaries via contextvars.
"""

from core.logging.context import clear_log_context, get_log_context, set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter, mask_email
from core.logging.setup import get_logger, setup_logging

__all__ = [
    "ConsoleFormatter",
    "JSONFormatter",
    "clear_log_context",
    "get_log_context",
    "get_logger",
    "mask_email",
    "set_log_context",
    "setup_logging",
]
