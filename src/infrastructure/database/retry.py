"""Bounded retry with capped exponential backoff.

The delay computation is a pure function so it can be tested on its own, and
the retry loop takes its sleep function as a parameter so tests can record the
delays instead of waiting for them.
"""

import asyncio
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict, Field

type SleepFunc = Callable[[float], Awaitable[None]]
type RetryCallback = Callable[[int, BaseException, float], None]


def backoff_delay(
    attempt: int, base: float, cap: float, factor: float = 2.0
) -> float:
    """Return the delay to wait after the given zero-based failed attempt.

    Args:
        attempt: Index of the attempt that just failed (0 for the first).
        base: Delay after the first failure, in seconds.
        cap: Maximum delay, in seconds.
        factor: Growth factor between consecutive delays.

    Returns:
        float: ``min(base * factor**attempt, cap)``.
    """
    if attempt < 0:
        msg = f"attempt must be non-negative, got {attempt}"
        raise ValueError(msg)
    return min(base * factor**attempt, cap)


class RetryPolicy(BaseModel):
    """How many times to try and how long to wait in between."""

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(default=3, ge=1)
    base_delay: float = Field(default=1.0, ge=0)
    max_delay: float = Field(default=10.0, ge=0)
    factor: float = Field(default=2.0, ge=1.0)

    def delay_for(self, attempt: int) -> float:
        """Backoff delay after the given zero-based failed attempt."""
        return backoff_delay(attempt, self.base_delay, self.max_delay, self.factor)


async def retry_with_backoff[T](
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    *,
    retry_on: tuple[type[BaseException], ...] = (Exception,),
    sleep: SleepFunc = asyncio.sleep,
    on_retry: RetryCallback | None = None,
) -> T:
    """Run ``operation`` until it succeeds or the policy is exhausted.

    Exceptions not listed in ``retry_on`` propagate immediately. After the
    last allowed attempt fails, its exception is re-raised unchanged.

    Args:
        operation: Zero-argument coroutine factory performing one attempt.
        policy: Retry bound and backoff parameters.
        retry_on: Exception types considered transient.
        sleep: Awaitable sleep used between attempts.
        on_retry: Called with (attempt, error, delay) before each wait.

    Returns:
        T: The result of the first successful attempt.
    """
    last_attempt = policy.max_retries - 1
    for attempt in range(policy.max_retries):
        try:
            return await operation()
        except retry_on as e:
            if attempt == last_attempt:
                raise
            delay = policy.delay_for(attempt)
            if on_retry is not None:
                on_retry(attempt, e, delay)
            await sleep(delay)

    # max_retries >= 1 guarantees the loop either returned or raised
    raise AssertionError("unreachable")
