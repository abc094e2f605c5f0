"""
Retry Policy
============

Decides which model errors are worth retrying and how long to wait.

Retryable errors are transient upstream conditions, recognised by their
message (case-insensitive):

    "failed to parse stream", "network error", "timeout", "rate limit",
    "429", "503", "504"

Everything else is terminal.

Backoff is exponential and capped:

    attempt 1 -> 1s, attempt 2 -> 2s, attempt 3 -> 4s, ... at most 10s

with_retry() drives the loop with tenacity and composes with
CircuitBreaker.wrap():

    call = with_retry(breaker.wrap(operation), policy)
    result = await call()
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from oss_advisor.utils.logger import Logger

logger = Logger("Retry")

T = TypeVar("T")

RETRYABLE_PATTERNS = (
    "failed to parse stream",
    "network error",
    "timeout",
    "rate limit",
    "429",  # Too Many Requests
    "503",  # Service Unavailable
    "504",  # Gateway Timeout
)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Attributes:
        max_attempts: Total attempts per request, including the first
        base_delay: Delay before the second attempt, in seconds
        max_delay: Upper bound for any single delay, in seconds
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    patterns: tuple[str, ...] = RETRYABLE_PATTERNS

    def is_retryable(self, error: BaseException | None) -> bool:
        """True when the error message contains a known transient pattern."""
        if error is None:
            return False
        message = str(error).lower()
        return any(pattern in message for pattern in self.patterns)

    def backoff_delay(self, attempt: int) -> float:
        """
        Seconds to wait after failed attempt number `attempt` (1-based).

        min(base_delay * 2^(attempt-1), max_delay)
        """
        if attempt < 1:
            raise ValueError("attempt numbers start at 1")
        return min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)


def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_attempt_failed: Callable[[int, Exception], None] | None = None
) -> Callable[[], Awaitable[T]]:
    """
    Wrap a zero-argument async operation with the retry policy.

    The returned callable re-raises the last error once attempts are
    exhausted or as soon as an error is not retryable.

    Args:
        operation: The unit of work (usually already wrapped by a breaker)
        policy: Retry and backoff settings
        sleep: Awaitable delay function
        on_attempt_failed: Called with (attempt, error) after each failure
    """
    def log_backoff(retry_state: RetryCallState) -> None:
        logger.debug(
            f"Retrying in {retry_state.next_action.sleep:g}s "
            f"(attempt {retry_state.attempt_number + 1}/{policy.max_attempts})"
        )

    async def retrying() -> T:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=wait_exponential(
                multiplier=policy.base_delay, min=policy.base_delay, max=policy.max_delay
            ),
            retry=retry_if_exception(policy.is_retryable),
            sleep=sleep,
            before_sleep=log_backoff,
            reraise=True,
        ):
            with attempt:
                try:
                    result = await operation()
                except Exception as e:
                    if on_attempt_failed is not None:
                        on_attempt_failed(attempt.retry_state.attempt_number, e)
                    raise
        return result

    return retrying
