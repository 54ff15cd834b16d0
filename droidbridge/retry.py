"""Bounded retry for async operations.

A :class:`RetryPolicy` says how many times to retry and which failures are
worth retrying; :func:`with_retry` re-runs a coroutine factory under it.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

RetryPredicate = Callable[[Exception, int], bool]


def retry_on_types(*types: type[Exception]) -> RetryPredicate:
    """Predicate retrying only failures of the given exception *types*."""

    def _predicate(exc: Exception, attempt: int) -> bool:
        return isinstance(exc, types)

    return _predicate


@dataclass(frozen=True)
class RetryPolicy:
    """Retry settings.

    Attributes:
        retries:  Retries after the first attempt (``3`` → at most 4 calls).
        retry_on: ``(error, retry_number) -> bool``; ``None`` retries any
                  :class:`Exception`.  ``retry_number`` starts at 1.
        delay:    Seconds to sleep before each retry.
    """

    retries: int
    retry_on: RetryPredicate | None = None
    delay: float = 0.0

    def should_retry(self, exc: Exception, retry_number: int) -> bool:
        if retry_number > self.retries:
            return False
        if self.retry_on is None:
            return True
        return self.retry_on(exc, retry_number)


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    description: str = "",
) -> T:
    """Await ``operation()`` until it succeeds or *policy* gives up.

    The last failure is re-raised unchanged.  Cancellation is never retried.
    """
    retry_number = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            retry_number += 1
            if not policy.should_retry(exc, retry_number):
                raise
            logger.warning(
                "%s: retrying (%d/%d) after %s",
                description or getattr(operation, "__name__", "operation"),
                retry_number,
                policy.retries,
                exc,
            )
            if policy.delay > 0:
                await asyncio.sleep(policy.delay)
