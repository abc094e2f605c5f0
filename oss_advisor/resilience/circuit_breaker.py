"""
Circuit Breaker
===============

Stops calling the model when it keeps failing.

State machine:

    CLOSED ──(failures >= threshold)──► OPEN
      ▲                                  │
      │                        (reset timeout elapsed,
      │                         next call goes through)
      │                                  ▼
      └────────(call succeeds)──────  HALF_OPEN
                                         │
                     (call fails: counted like any failure,
                      threshold re-evaluated)

While OPEN and inside the reset timeout, execute() raises CircuitOpenError
without running the operation. A success reported while OPEN (a call
that started before the circuit opened) changes nothing.

One breaker is shared by every request in the process, so a run of
upstream failures from any conversation protects all of them. State
changes are single-step updates made under a short lock that is never
held across an await.
"""

import threading
import time
from dataclasses import dataclass, replace
from enum import Enum
from typing import Awaitable, Callable, TypeVar

from oss_advisor.utils.errors import CircuitOpenError
from oss_advisor.utils.logger import Logger

logger = Logger("CircuitBreaker")

T = TypeVar("T")


class CircuitStatus(str, Enum):
    CLOSED = "CLOSED"
    OPEN = "OPEN"
    HALF_OPEN = "HALF_OPEN"


@dataclass(frozen=True)
class CircuitState:
    """
    Snapshot of the breaker.

    Attributes:
        status: Current position in the state machine
        consecutive_failures: Failures since the last success
        last_failure_at: Clock reading of the most recent failure
    """
    status: CircuitStatus = CircuitStatus.CLOSED
    consecutive_failures: int = 0
    last_failure_at: float | None = None


class CircuitBreaker:
    """
    Guards an async operation with a failure-counting circuit.

    Example:
        breaker = CircuitBreaker(failure_threshold=5, reset_timeout=30.0)

        answer = await breaker.execute(lambda: model.invoke(messages))

        # Or wrap once and call many times
        guarded = breaker.wrap(call_model)
        answer = await guarded()
    """

    def __init__(
        self,
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic
    ):
        """
        Args:
            failure_threshold: Consecutive failures that open the circuit
            reset_timeout: Seconds after the last failure before a probe call
            clock: Monotonic time source in seconds
        """
        if failure_threshold < 1:
            raise ValueError("failure_threshold must be at least 1")

        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self._clock = clock
        self._state = CircuitState()
        self._lock = threading.Lock()

    @property
    def state(self) -> CircuitState:
        """A consistent snapshot of the current state."""
        with self._lock:
            return self._state

    def _before_call(self) -> None:
        with self._lock:
            state = self._state
            if state.status != CircuitStatus.OPEN:
                return

            elapsed = self._clock() - state.last_failure_at
            if elapsed < self.reset_timeout:
                raise CircuitOpenError()

            self._state = replace(state, status=CircuitStatus.HALF_OPEN)

        logger.info("Reset timeout elapsed, probing upstream (HALF_OPEN)")

    def _on_success(self) -> None:
        with self._lock:
            previous = self._state
            # Calls that started before the circuit opened must not close it
            if previous.status == CircuitStatus.OPEN:
                return
            if previous.consecutive_failures == 0 and previous.status == CircuitStatus.CLOSED:
                return
            self._state = CircuitState()

        if previous.status == CircuitStatus.HALF_OPEN:
            logger.info("Probe succeeded, circuit CLOSED")

    def _on_failure(self) -> None:
        with self._lock:
            failures = self._state.consecutive_failures + 1
            status = self._state.status
            if failures >= self.failure_threshold:
                status = CircuitStatus.OPEN
            self._state = CircuitState(
                status=status,
                consecutive_failures=failures,
                last_failure_at=self._clock(),
            )

        if status == CircuitStatus.OPEN:
            logger.warning(
                f"Circuit OPEN after {failures} consecutive failures",
                {"reset_timeout_seconds": self.reset_timeout}
            )

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """
        Run a zero-argument async operation through the circuit.

        Raises:
            CircuitOpenError: If the circuit is open and still cooling down
            Exception: Whatever the operation raised, after bookkeeping
        """
        self._before_call()

        try:
            result = await operation()
        except Exception:
            self._on_failure()
            raise

        self._on_success()
        return result

    def wrap(self, operation: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[T]]:
        """Return a zero-argument callable that runs `operation` through this breaker."""
        async def guarded() -> T:
            return await self.execute(operation)

        return guarded
