"""
Retry policy shared by the task queue and the brand worker.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from bulkfetch.errors import RetryExhaustedError, is_retryable

T = TypeVar("T")

BackoffFn = Callable[[int], float]
ExhaustedFn = Callable[[Any, BaseException, int], Awaitable[None]]
RetryScheduledFn = Callable[[Any, BaseException, int, float], None]


def exponential_backoff(*, initial_seconds: float, multiplier: float = 2.0, max_seconds: float | None = None) -> BackoffFn:
    """
    Return `retry_index -> min(initial * multiplier**retry_index, max)`.
    """

    def backoff(retry_index: int) -> float:
        delay = initial_seconds * (multiplier**retry_index)
        if max_seconds is not None:
            delay = min(delay, max_seconds)
        return max(0.0, delay)

    return backoff


def fixed_backoff(seconds: float) -> BackoffFn:
    return lambda retry_index: max(0.0, seconds)


@dataclass
class RetryPolicy:
    """
    Max attempts, a backoff function, and a terminal action.

    `max_attempts` counts the first try. `on_exhausted` runs once, after the
    final failed attempt or a non-retryable error.
    """

    max_attempts: int
    backoff: BackoffFn = field(default_factory=lambda: fixed_backoff(0.0))
    retryable: Callable[[BaseException], bool] = is_retryable
    on_exhausted: ExhaustedFn | None = None
    on_retry_scheduled: RetryScheduledFn | None = None
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def should_retry(self, exc: BaseException, attempts_made: int) -> bool:
        return attempts_made < self.max_attempts and self.retryable(exc)

    def delay_for(self, attempts_made: int) -> float:
        return self.backoff(max(0, attempts_made - 1))

    async def exhaust(self, payload: Any, exc: BaseException, attempts_made: int) -> None:
        if self.on_exhausted is not None:
            await self.on_exhausted(payload, exc, attempts_made)

    async def run(self, operation: Callable[[Any], Awaitable[T]], payload: Any) -> T:
        """
        Await `operation(payload)` until it succeeds or the policy gives up.

        Raises:
            RetryExhaustedError: after the terminal action has run.
        """

        attempts_made = 0
        while True:
            attempts_made += 1
            try:
                return await operation(payload)
            except Exception as exc:
                if not self.should_retry(exc, attempts_made):
                    await self.exhaust(payload, exc, attempts_made)
                    raise RetryExhaustedError(attempts_made, exc) from exc
                delay = self.delay_for(attempts_made)
                if self.on_retry_scheduled is not None:
                    self.on_retry_scheduled(payload, exc, attempts_made, delay)
                await self.sleep(delay)
