"""
Resilience
==========

Protection around the upstream model call:
- CircuitBreaker: fast-fails while the model is unhealthy
- RetryPolicy / with_retry: retries transient errors with capped backoff
"""

from oss_advisor.resilience.circuit_breaker import CircuitBreaker, CircuitState, CircuitStatus
from oss_advisor.resilience.retry import RetryPolicy, with_retry, RETRYABLE_PATTERNS

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "CircuitStatus",
    "RetryPolicy",
    "with_retry",
    "RETRYABLE_PATTERNS",
]
