"""
Bounded-concurrency batch executor.

``run_batch`` attempts every item exactly once through a fixed pool of
asyncio workers pulling from a queue. A failing item never stops the
others: its exception is recorded against it and the rest carry on.
Results are stored by input position, so successes and failures come back
in input order whatever order items complete in.

The Deadline token is the only thing that aborts a batch. It is checked
before each item starts; on expiry the TIMEOUT error propagates, the other
workers are cancelled, and nothing is recorded as an item failure.

Example:
    >>> result = await run_batch(
    ...     operations,
    ...     "Creating Categories",
    ...     key_of=lambda op: op.key,
    ...     process=apply_operation,
    ...     concurrency=5,
    ... )
    >>> [f.item.key for f in result.failures]
    ['kids']
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from shopform.core.deadline import Deadline

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_CONCURRENCY = 5


class BatchItemError(Exception):
    """Wraps a failure value that was not an Exception instance."""


def normalize_error(value: object) -> Exception:
    """
    Return ``value`` as an Exception.

    Exceptions pass through unchanged; anything else (including None) is
    wrapped in a BatchItemError carrying its string form.
    """
    if isinstance(value, Exception):
        return value
    return BatchItemError(str(value))


@dataclass(frozen=True)
class BatchSuccess(Generic[T, R]):
    item: T
    result: R


@dataclass(frozen=True)
class BatchFailure(Generic[T]):
    item: T
    error: Exception


@dataclass
class BatchResult(Generic[T, R]):
    """Partition of a batch's items by outcome, each in input order."""

    successes: list[BatchSuccess[T, R]] = field(default_factory=list)
    failures: list[BatchFailure[T]] = field(default_factory=list)

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    @property
    def total(self) -> int:
        return len(self.successes) + len(self.failures)


async def run_batch(
    items: Sequence[T],
    operation_name: str,
    key_of: Callable[[T], str],
    process: Callable[[T], Awaitable[R]],
    *,
    concurrency: int = DEFAULT_CONCURRENCY,
    sequential: bool = False,
    delay: float = 0.0,
    deadline: Deadline | None = None,
) -> BatchResult[T, R]:
    """
    Run ``process`` over ``items`` with at most ``concurrency`` in flight.

    Args:
        items: Work items
        operation_name: Name used in the failure log (e.g. "Creating Categories")
        key_of: Display key for an item, used in logs
        process: Coroutine function applied to each item
        concurrency: Worker pool size (>= 1)
        sequential: Force one item at a time regardless of concurrency
        delay: Seconds each worker pauses after an item before taking the next
        deadline: Command deadline, checked before each item starts

    Returns:
        BatchResult with every item in exactly one of successes/failures

    Raises:
        ValueError: If concurrency < 1
        ConfiguratorError: kind TIMEOUT when the deadline expires
    """
    if concurrency < 1:
        raise ValueError(f"concurrency must be >= 1, got {concurrency}")

    if not items:
        return BatchResult()

    workers = 1 if sequential else min(concurrency, len(items))
    outcomes: list[BatchSuccess[T, R] | BatchFailure[T] | None] = [None] * len(items)

    queue: asyncio.Queue[tuple[int, T]] = asyncio.Queue()
    for entry in enumerate(items):
        queue.put_nowait(entry)

    async def worker() -> None:
        while True:
            try:
                index, item = queue.get_nowait()
            except asyncio.QueueEmpty:
                return

            if deadline is not None:
                deadline.check()

            try:
                outcomes[index] = BatchSuccess(item, await process(item))
            except Exception as e:
                outcomes[index] = BatchFailure(item, normalize_error(e))

            if delay > 0 and not queue.empty():
                await asyncio.sleep(delay)

    logger.debug("%s: %d items, %d workers", operation_name, len(items), workers)
    tasks = [asyncio.create_task(worker()) for _ in range(workers)]
    try:
        await asyncio.gather(*tasks)
    except BaseException:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        raise

    result: BatchResult[T, R] = BatchResult()
    for outcome in outcomes:
        if isinstance(outcome, BatchSuccess):
            result.successes.append(outcome)
        elif isinstance(outcome, BatchFailure):
            result.failures.append(outcome)

    if result.failures:
        logger.warning(
            "%s: %d of %d failed: %s",
            operation_name,
            len(result.failures),
            len(items),
            ", ".join(key_of(failure.item) for failure in result.failures),
        )
    return result


__all__ = [
    "BatchFailure",
    "BatchItemError",
    "BatchResult",
    "BatchSuccess",
    "DEFAULT_CONCURRENCY",
    "normalize_error",
    "run_batch",
]
