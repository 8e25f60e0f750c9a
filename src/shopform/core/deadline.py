"""
Per-command deadline.

A single timeout covers a whole diff or deploy, not individual items. The
Deadline token is created once per command, wrapped around the top-level
coroutine with ``run_with_deadline``, and also handed to the batch executor,
which checks it before starting each item. Expiry surfaces as a
ConfiguratorError of kind TIMEOUT, never as a partial stage failure.

Example:
    >>> deadline = Deadline(timeout_seconds=300)
    >>> result = await run_with_deadline(orchestrator.deploy(summary), deadline)
"""

import asyncio
import time
from collections.abc import Callable, Coroutine
from typing import Any, TypeVar

from shopform.core.errors import ConfiguratorError

T = TypeVar("T")


class Deadline:
    """
    Wall-clock budget for one command.

    Attributes:
        timeout_seconds: Total budget, or None for no limit
    """

    def __init__(
        self,
        timeout_seconds: float | None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Start the deadline clock.

        Args:
            timeout_seconds: Budget in seconds; None disables the deadline

        Raises:
            ValueError: If timeout_seconds is not positive
        """
        if timeout_seconds is not None and timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {timeout_seconds}")
        self.timeout_seconds = timeout_seconds
        self._clock = clock
        self._started = clock()

    def remaining(self) -> float | None:
        """Seconds left, clamped at zero, or None when unlimited."""
        if self.timeout_seconds is None:
            return None
        return max(0.0, self.timeout_seconds - (self._clock() - self._started))

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        """Raise a TIMEOUT error if the budget is spent."""
        if self.expired:
            assert self.timeout_seconds is not None
            raise ConfiguratorError.timeout(self.timeout_seconds)


async def run_with_deadline(coro: Coroutine[Any, Any, T], deadline: Deadline | None) -> T:
    """
    Await ``coro`` within the deadline's remaining budget.

    In-flight work is cancelled on expiry.

    Raises:
        ConfiguratorError: kind TIMEOUT when the deadline elapses
    """
    if deadline is None or deadline.timeout_seconds is None:
        return await coro

    if deadline.expired:
        coro.close()
        raise ConfiguratorError.timeout(deadline.timeout_seconds)

    try:
        return await asyncio.wait_for(coro, timeout=deadline.remaining())
    except asyncio.TimeoutError:
        raise ConfiguratorError.timeout(deadline.timeout_seconds) from None


__all__ = ["Deadline", "run_with_deadline"]
