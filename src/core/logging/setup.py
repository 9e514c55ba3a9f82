"""Logging setup for worker processes."""

import logging
import os
import sys
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from core.logging.context import set_log_context
from core.logging.formatters import ConsoleFormatter, JSONFormatter

DEFAULT_LOG_DIR = Path("logs")
DEFAULT_MAX_BYTES = 10 * 1024 * 1024  # 10MB
DEFAULT_BACKUP_COUNT = 5
DEFAULT_CONSOLE_LEVEL = logging.INFO
DEFAULT_FILE_LEVEL = logging.DEBUG

# Client libraries that log every connection and request at INFO
NOISY_LOGGERS = [
    "aiokafka",
    "aiosmtplib",
    "kafka",
]

PLAIN_FILE_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"
)


def get_log_file_path(
    log_dir: Path,
    domain: Optional[str] = None,
    stage: Optional[str] = None,
    instance_id: Optional[str] = None,
) -> Path:
    """
    Build the log file path for a process.

    Layout: {log_dir}/[{domain}/]{YYYY-MM-DD}/{domain}_{stage}_{YYYYMMDD}[_{instance_id}].log

    Missing parts are skipped; with neither domain nor stage the file is
    named pipeline_{YYYYMMDD}.log. instance_id keeps several consumers of
    the same group from sharing one file.
    """
    now = datetime.now()
    name_parts = [p for p in (domain, stage) if p] or ["pipeline"]
    name_parts.append(now.strftime("%Y%m%d"))
    if instance_id:
        name_parts.append(instance_id)

    folder = log_dir / domain if domain else log_dir
    return folder / now.strftime("%Y-%m-%d") / ("_".join(name_parts) + ".log")


def build_file_handler(
    log_file: Path,
    json_format: bool = True,
    level: int = DEFAULT_FILE_LEVEL,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
) -> RotatingFileHandler:
    """Rotating file handler writing JSON lines (or plain text)."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_file,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setLevel(level)
    handler.setFormatter(
        JSONFormatter() if json_format else logging.Formatter(PLAIN_FILE_FORMAT)
    )
    return handler


def build_console_handler(level: int = DEFAULT_CONSOLE_LEVEL) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(ConsoleFormatter())
    return handler


def setup_logging(
    name: str = "pipeline",
    stage: Optional[str] = None,
    domain: Optional[str] = None,
    log_dir: Optional[Path] = None,
    json_format: bool = True,
    console_level: int = DEFAULT_CONSOLE_LEVEL,
    file_level: int = DEFAULT_FILE_LEVEL,
    max_bytes: int = DEFAULT_MAX_BYTES,
    backup_count: int = DEFAULT_BACKUP_COUNT,
    suppress_noisy: bool = True,
    worker_id: Optional[str] = None,
    use_instance_id: bool = True,
) -> logging.Logger:
    """
    Route all logging to stdout and a rotating per-process file.

    Replaces any handlers already on the root logger, so calling it twice
    does not duplicate output. Context values (worker_id, stage, domain)
    are stored in contextvars and stamped on every record by the
    formatters.

    Example file:
        logs/notifications/2025-01-15/notifications_mail_20250115_p12345.log

    Args:
        name: Logger name returned to the caller
        stage: Stage name (mail, provision)
        domain: Pipeline domain
        log_dir: Base directory for log files (default: ./logs)
        json_format: JSON lines in the file instead of plain text
        console_level: Minimum level printed to stdout
        file_level: Minimum level written to the file
        max_bytes: File size that triggers rotation
        backup_count: Rotated files to keep
        suppress_noisy: Raise Kafka and SMTP client loggers to WARNING
        worker_id: Worker identifier for context
        use_instance_id: Append the process ID to the file name

    Returns:
        Logger named `name`
    """
    set_log_context(worker_id=worker_id, stage=stage, domain=domain)

    log_file = get_log_file_path(
        log_dir or DEFAULT_LOG_DIR,
        domain=domain,
        stage=stage,
        instance_id=f"p{os.getpid()}" if use_instance_id else None,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Handlers do the filtering
    root_logger.handlers.clear()
    root_logger.addHandler(
        build_file_handler(log_file, json_format, file_level, max_bytes, backup_count)
    )
    root_logger.addHandler(build_console_handler(console_level))

    if suppress_noisy:
        for logger_name in NOISY_LOGGERS:
            logging.getLogger(logger_name).setLevel(logging.WARNING)

    logger = logging.getLogger(name)
    logger.debug(f"Logging initialized: file={log_file}, json={json_format}")
    return logger


def get_logger(name: str) -> logging.Logger:
    """Module logger; use after setup_logging() has configured handlers."""
    return logging.getLogger(name)
