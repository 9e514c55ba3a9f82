"""
Entry point for running the notification pipeline.

Usage:
    # Run the mail worker (default)
    python -m notification_pipeline

    # Only make sure the send-mail topic exists, then exit
    python -m notification_pipeline --worker provision

    # Run with metrics server
    python -m notification_pipeline --metrics-port 8000

    # Run in development mode (emails are logged, not sent)
    python -m notification_pipeline --dev

Exit codes:
    0 - clean shutdown, or topic created/already present (provision)
    1 - configuration error, broker unreachable at startup, fatal error
"""

import argparse
import asyncio
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from prometheus_client import start_http_server

from core.errors import ConfigurationError
from core.logging.context import set_log_context
from core.logging.setup import get_logger, setup_logging

# Placeholder logger until setup_logging() is called in main()
logger = logging.getLogger(__name__)

# Set by signal handlers; the worker finishes the current email and exits
_shutdown_event: Optional[asyncio.Event] = None


def get_shutdown_event() -> asyncio.Event:
    """Event set by the first SIGINT/SIGTERM."""
    global _shutdown_event
    if _shutdown_event is None:
        _shutdown_event = asyncio.Event()
    return _shutdown_event


def parse_args(argv=None) -> argparse.Namespace:
    """Parse command line arguments (argv defaults to sys.argv)."""
    parser = argparse.ArgumentParser(
        description="Run the notification pipeline",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # Deliver emails from the send-mail topic
    python -m notification_pipeline

    # Provision the send-mail topic only
    python -m notification_pipeline --worker provision

    # Log emails instead of sending them
    python -m notification_pipeline --dev
        """,
    )

    parser.add_argument(
        "--worker",
        choices=["mail", "provision"],
        default="mail",
        help="What to run (default: mail)",
    )

    parser.add_argument(
        "--metrics-port",
        type=int,
        default=8000,
        help="Port for Prometheus metrics server, 0 disables it (default: 8000)",
    )

    parser.add_argument(
        "--dev",
        action="store_true",
        help="Development mode: log emails instead of sending them over SMTP",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default="INFO",
        help="Logging level (default: INFO)",
    )

    parser.add_argument(
        "--log-dir",
        type=str,
        default=None,
        help="Log directory path (default: from LOG_DIR env var or ./logs)",
    )

    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: src/config.yaml)",
    )

    return parser.parse_args(argv)


async def run_provision(config) -> int:
    """Ensure the send-mail topic exists.

    Returns:
        Process exit code
    """
    from notification_pipeline.broker import BrokerConnectionManager

    set_log_context(stage="provision")
    kafka = config.kafka

    manager = BrokerConnectionManager(kafka)
    status = await manager.ensure_topic(
        kafka.mail_topic,
        partitions=kafka.mail_topic_partitions,
        replication_factor=kafka.mail_topic_replication_factor,
    )
    return 0 if status.is_available else 1


async def run_mail_worker(config, dev: bool = False) -> None:
    """Run the Mail worker.

    Consumes envelopes from the send-mail topic and delivers them.

    Supports graceful shutdown: when shutdown event is set, the worker
    finishes the email in progress before exiting.
    """
    from notification_pipeline.mail import LogMailTransport
    from notification_pipeline.workers import MailWorker

    set_log_context(stage="mail")
    logger.info("Starting Mail worker...")

    transport = LogMailTransport() if dev else None
    worker = MailWorker(config=config, transport=transport)
    shutdown_event = get_shutdown_event()

    async def shutdown_watcher():
        """Ask the worker to stop once a shutdown signal arrives."""
        await shutdown_event.wait()
        logger.info("Shutdown signal received, stopping mail worker after current email...")
        await worker.request_shutdown()

    watcher_task = asyncio.create_task(shutdown_watcher())

    try:
        await worker.start()
    finally:
        watcher_task.cancel()
        try:
            await watcher_task
        except asyncio.CancelledError:
            pass
        await worker.stop()


def setup_signal_handlers(loop: asyncio.AbstractEventLoop):
    """Set up signal handlers for graceful shutdown.

    First SIGTERM/SIGINT: sets the shutdown event so the worker finishes
    the current email and exits.
    Second signal: cancels all tasks immediately.
    """

    def handle_signal(sig):
        logger.info(f"Received signal {sig.name}, initiating graceful shutdown...")
        shutdown_event = get_shutdown_event()
        if not shutdown_event.is_set():
            shutdown_event.set()
        else:
            logger.warning("Received second signal, forcing immediate shutdown...")
            for task in asyncio.all_tasks(loop):
                task.cancel()

    # Signal handlers are not supported on Windows
    if sys.platform == "win32":
        logger.debug("Signal handlers not supported on Windows, using KeyboardInterrupt")
        return

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))


def main(argv=None):
    """Configure logging, load configuration and run the selected worker."""
    global logger
    args = parse_args(argv)

    load_dotenv()

    log_level = getattr(logging, args.log_level)

    # JSON_LOGS=false gives human-readable logs during local development
    json_logs = os.getenv("JSON_LOGS", "true").lower() in ("true", "1", "yes")

    # Log directory: CLI arg > env var > default ./logs
    log_dir = Path(args.log_dir or os.getenv("LOG_DIR", "logs"))

    worker_id = os.getenv("WORKER_ID", f"notifications-{args.worker}")

    setup_logging(
        name="notification_pipeline",
        stage=args.worker,
        domain="notifications",
        log_dir=log_dir,
        json_format=json_logs,
        console_level=log_level,
        worker_id=worker_id,
    )

    logger = get_logger(__name__)

    from notification_pipeline.config import NotificationConfig

    try:
        config = NotificationConfig.load_config(
            Path(args.config) if args.config else None
        )
    except (ConfigurationError, ValueError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    if args.dev:
        logger.info("Running in DEVELOPMENT mode (emails are logged, not sent)")

    if args.metrics_port and args.worker == "mail":
        logger.info(f"Starting metrics server on port {args.metrics_port}")
        start_http_server(args.metrics_port)

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    setup_signal_handlers(loop)

    exit_code = 0
    try:
        if args.worker == "provision":
            exit_code = loop.run_until_complete(run_provision(config))
        else:
            loop.run_until_complete(run_mail_worker(config, dev=args.dev))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down...")
    except asyncio.CancelledError:
        logger.info("Tasks cancelled, shutting down...")
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        exit_code = 1
    finally:
        loop.close()
        logger.info("Notification pipeline shutdown complete")

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
