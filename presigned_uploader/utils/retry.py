"""
Exponential backoff schedule and the retry loop built on it.

One ``BackoffSchedule`` is shared by the part uploader and the completion
poller so both are tuned through the same knobs.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")
Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class BackoffSchedule:
    """
    Exponential delay schedule.

    Attributes:
        base_delay: Delay before the first retry, in seconds
        multiplier: Growth factor applied per attempt
        max_delay: Upper bound for a single delay (None = unbounded)
    """
    base_delay: float = 0.01
    multiplier: float = 4.0
    max_delay: Optional[float] = 1.0

    def __post_init__(self):
        if self.base_delay <= 0:
            raise ValueError("base_delay must be positive")
        if self.multiplier < 1:
            raise ValueError("multiplier must be >= 1")
        if self.max_delay is not None and self.max_delay < self.base_delay:
            raise ValueError("max_delay must be >= base_delay")

    def delay(self, attempt: int) -> float:
        """Delay after the given 0-indexed failed attempt."""
        value = self.base_delay * (self.multiplier ** attempt)
        if self.max_delay is not None:
            value = min(value, self.max_delay)
        return value

    def __call__(self, attempt: int) -> float:
        return self.delay(attempt)


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    schedule: Callable[[int], float],
    should_retry: Callable[[BaseException], bool],
    max_attempts: Optional[int] = None,
    sleep: Sleep = asyncio.sleep,
    description: str = "operation",
) -> T:
    """
    Run ``operation`` until it succeeds or fails with a non-retryable error.

    Errors for which ``should_retry`` is False propagate immediately. When
    ``max_attempts`` is reached the last retryable error is re-raised; the
    caller decides how to escalate it.
    """
    if max_attempts is not None and max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as exc:
            if not should_retry(exc):
                raise
            attempt += 1
            if max_attempts is not None and attempt >= max_attempts:
                logger.debug(f"{description} failed after {attempt} attempts: {exc}")
                raise
            delay = schedule(attempt - 1)
            logger.debug(
                "%s failed (attempt %d), retrying in %.3fs: %s",
                description,
                attempt,
                delay,
                exc,
            )
            await sleep(delay)
