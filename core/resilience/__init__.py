"""Resilience primitives: circuit breaker, retry, connection pool, bounded ring."""

from core.resilience.circuit_breaker import CircuitBreaker, CircuitState
from core.resilience.retry import RetryConfig, retry_async
from core.resilience.executor import ResilientExecutor
from core.resilience.pool import ConnectionPool
from core.resilience.ring import BoundedRing
from core.resilience.cancellation import CancellationToken

__all__ = [
    "CircuitBreaker",
    "CircuitState",
    "RetryConfig",
    "retry_async",
    "ResilientExecutor",
    "ConnectionPool",
    "BoundedRing",
    "CancellationToken",
]
