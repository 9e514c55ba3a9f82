"""Long-running workers."""

from notification_pipeline.workers.mail_worker import MailWorker

__all__ = ["MailWorker"]
