#!/usr/bin/env python3
"""Retry policy for backend invocations.

Centralizes the exponential backoff used by the backend invoker so every
provider call retries the same way:

    policy = RetryPolicy(max_attempts=3, backoff_base=2.0)
    policy.delay_for(1)  # 2.0
    policy.delay_for(2)  # 4.0

    result = await retry_async(fetch_reply, policy=policy)
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .exceptions import BackendProtocolError, ResponseRejectedError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]

# Default exceptions that are considered retryable
DEFAULT_RETRYABLE_EXCEPTIONS = (
    BackendProtocolError,
    ResponseRejectedError,
    asyncio.TimeoutError,
    ConnectionResetError,
    OSError,
)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with exponential backoff.

    Attributes:
        max_attempts: Maximum number of attempts (including first try)
        backoff_base: Delay in seconds after the first failed attempt
        backoff_multiplier: Multiplier applied per further attempt
        max_delay: Upper bound for any single delay
    """

    max_attempts: int = 3
    backoff_base: float = 2.0
    backoff_multiplier: float = 2.0
    max_delay: float = 30.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.backoff_base < 0:
            raise ValueError("backoff_base must not be negative")

    def delay_for(self, attempt: int) -> float:
        """Delay to wait after failed attempt number `attempt` (1-based)."""
        delay = self.backoff_base * (self.backoff_multiplier ** (attempt - 1))
        return min(delay, self.max_delay)

    def has_attempts_left(self, attempt: int) -> bool:
        """True if another attempt may follow attempt number `attempt`."""
        return attempt < self.max_attempts


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args,
    policy: Optional[RetryPolicy] = None,
    retryable_exceptions: tuple = DEFAULT_RETRYABLE_EXCEPTIONS,
    sleep: SleepFunc = asyncio.sleep,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    **kwargs,
) -> T:
    """Retry an async function call according to a RetryPolicy.

    Args:
        func: Async function to call
        *args: Arguments to pass to func
        policy: Retry policy (defaults to RetryPolicy())
        retryable_exceptions: Exceptions to retry on
        sleep: Awaitable sleep used between attempts
        on_retry: Optional callback called before each retry with (exception, attempt)
        **kwargs: Keyword arguments to pass to func

    Returns:
        Result from func

    Raises:
        The last retryable exception once attempts are exhausted, or any
        non-retryable exception immediately.
    """
    policy = policy or RetryPolicy()
    last_exception: Optional[Exception] = None

    for attempt in range(1, policy.max_attempts + 1):
        try:
            return await func(*args, **kwargs)

        except retryable_exceptions as e:
            last_exception = e

            if not policy.has_attempts_left(attempt):
                logger.error(
                    f"All {policy.max_attempts} attempts failed. Last error: {e}"
                )
                raise

            delay = policy.delay_for(attempt)
            if on_retry:
                on_retry(e, attempt)
            logger.warning(
                f"Retry {attempt}/{policy.max_attempts}: {e}. Waiting {delay:.1f}s"
            )
            await sleep(delay)

    if last_exception:
        raise last_exception
    raise RuntimeError("Retry logic error")
