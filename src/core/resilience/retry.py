"""
Retry with exponential backoff for async operations.

Usage:
    config = RetryConfig(max_attempts=3, base_delay=1.0, max_delay=30.0)
    result = await retry_async(lambda: client.start(), config, operation="connect")
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Tuple, Type, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Retry policy for an operation.

    max_attempts counts the first try, so max_attempts=1 means no retry.
    """

    max_attempts: int = 1
    base_delay: float = 1.0
    max_delay: float = 30.0
    retry_on: Tuple[Type[BaseException], ...] = (Exception,)

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ValueError("Retry delays must be non-negative")

    def get_delay(self, attempt: int) -> float:
        """Delay in seconds before the attempt following `attempt` (1-indexed)."""
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


# Single attempt: fail fast and rely on the process supervisor
SINGLE_ATTEMPT = RetryConfig(max_attempts=1)


async def retry_async(
    func: Callable[[], Awaitable[T]],
    config: RetryConfig = SINGLE_ATTEMPT,
    operation: str = "operation",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Run an async callable, retrying with exponential backoff.

    Args:
        func: Zero-argument coroutine factory
        config: Retry policy
        operation: Name used in log messages
        sleep: Sleep function (injectable for tests)

    Returns:
        Result of the first successful call

    Raises:
        The last exception once attempts are exhausted
    """
    attempt = 1
    while True:
        try:
            return await func()
        except config.retry_on as e:
            if attempt >= config.max_attempts:
                raise
            delay = config.get_delay(attempt)
            logger.warning(
                f"{operation} failed, retrying in {delay:.1f}s",
                extra={
                    "attempt": attempt,
                    "max_attempts": config.max_attempts,
                    "delay_seconds": delay,
                    "error_message": str(e),
                },
            )
            await sleep(delay)
            attempt += 1
