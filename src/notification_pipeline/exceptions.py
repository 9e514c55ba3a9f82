"""
Notification pipeline error types.

Every failure in the pipeline is terminal-and-logged where it happens; these
types carry the category used for logs and metrics.
"""

from typing import Optional

import aiosmtplib

from core.errors import (
    ErrorCategory,
    PipelineError,
    TransientError,
    ValidationError,
    classify_exception,
)


class BrokerConnectionError(TransientError):
    """Admin, producer or consumer client could not reach the broker."""

    pass


class PublishError(TransientError):
    """Send to the broker failed after a connection was established."""

    pass


class EnvelopeDecodeError(ValidationError):
    """Record payload is not a valid mail envelope."""

    pass


class DeliveryError(PipelineError):
    """Mail transport rejected or failed the send.

    Category is set per instance from the underlying SMTP failure.
    """

    def __init__(
        self,
        message: str,
        category: ErrorCategory = ErrorCategory.UNKNOWN,
        smtp_code: Optional[int] = None,
        cause: Optional[Exception] = None,
        context: Optional[dict] = None,
    ):
        super().__init__(message, cause, context)
        self.category = category
        self.smtp_code = smtp_code

    @classmethod
    def from_exception(
        cls, exc: Exception, context: Optional[dict] = None
    ) -> "DeliveryError":
        category, smtp_code = classify_smtp_error(exc)
        return cls(
            f"Mail delivery failed: {exc}",
            category=category,
            smtp_code=smtp_code,
            cause=exc,
            context=context,
        )


def classify_smtp_error(exc: Exception) -> tuple[ErrorCategory, Optional[int]]:
    """
    Classify a mail transport error.

    Returns:
        (category, smtp_code): 4xx replies, connection and timeout failures are
        transient; 535 is an auth failure; other 5xx replies are permanent.
    """
    smtp_code = None
    if isinstance(exc, aiosmtplib.SMTPResponseException):
        smtp_code = exc.code

    if isinstance(exc, aiosmtplib.SMTPAuthenticationError) or smtp_code == 535:
        return ErrorCategory.AUTH, smtp_code

    if isinstance(
        exc,
        (
            aiosmtplib.SMTPConnectError,
            aiosmtplib.SMTPServerDisconnected,
            aiosmtplib.SMTPTimeoutError,
        ),
    ):
        return ErrorCategory.TRANSIENT, smtp_code

    if smtp_code is not None:
        if 400 <= smtp_code < 500:
            return ErrorCategory.TRANSIENT, smtp_code
        if 500 <= smtp_code < 600:
            return ErrorCategory.PERMANENT, smtp_code

    return classify_exception(exc), smtp_code


__all__ = [
    "BrokerConnectionError",
    "DeliveryError",
    "EnvelopeDecodeError",
    "PublishError",
    "classify_smtp_error",
]
