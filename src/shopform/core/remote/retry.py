"""
Retry with exponential backoff for admin API requests.

Only transient failures are retried: 5xx responses, timeouts and
connection errors. Client errors (4xx) fail immediately.
"""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

import httpx

logger = logging.getLogger(__name__)

T = TypeVar("T")

JITTER_RATIO = 0.2


@dataclass(frozen=True)
class RetryConfig:
    """Backoff policy: ``base_delay * multiplier ** attempt``, ±20% with jitter."""

    max_retries: int = 3
    base_delay: float = 1.0
    multiplier: float = 2.0
    jitter: bool = True

    def __post_init__(self) -> None:
        if self.max_retries < 0:
            raise ValueError("max_retries must be non-negative")
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")

    def calculate_delay(self, attempt: int) -> float:
        delay = self.base_delay * self.multiplier**attempt
        if self.jitter:
            delay *= random.uniform(1 - JITTER_RATIO, 1 + JITTER_RATIO)
        return delay


def is_retryable_error(exception: BaseException) -> bool:
    """
    True for transient HTTP failures worth retrying.

    HTTPStatusError is checked first because it is also an HTTPError.
    """
    if isinstance(exception, httpx.HTTPStatusError):
        return 500 <= exception.response.status_code < 600
    if isinstance(exception, (httpx.TimeoutException, httpx.RequestError)):
        return True
    return False


async def send_with_retry(
    send: Callable[[], Awaitable[T]],
    config: RetryConfig,
    *,
    operation: str = "request",
) -> T:
    """
    Await ``send()`` until it succeeds, retrying transient errors.

    Args:
        send: Zero-argument coroutine factory; called once per attempt
        config: Retry policy
        operation: Name used in log messages

    Returns:
        The first successful result

    Raises:
        The last exception when it is not retryable or retries run out
    """
    attempt = 0
    while True:
        try:
            return await send()
        except Exception as e:
            if not is_retryable_error(e):
                logger.debug("%s: non-retryable error on attempt %d: %s", operation, attempt + 1, e)
                raise
            if attempt >= config.max_retries:
                logger.warning("%s: max retries (%d) exceeded: %s", operation, config.max_retries, e)
                raise

            delay = config.calculate_delay(attempt)
            logger.info(
                "%s: retry attempt %d/%d after %.2fs due to: %s",
                operation,
                attempt + 1,
                config.max_retries,
                delay,
                e,
            )
            await asyncio.sleep(delay)
            attempt += 1


__all__ = ["RetryConfig", "is_retryable_error", "send_with_retry"]
