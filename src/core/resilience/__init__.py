"""
Resilience patterns module.

Provides retry with exponential backoff for broker connections.
"""

from core.resilience.retry import SINGLE_ATTEMPT, RetryConfig, retry_async

__all__ = [
    "RetryConfig",
    "SINGLE_ATTEMPT",
    "retry_async",
]
