"""Retry policy and circuit breaker composed into one executor, with
per-protocol presets."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

from core.resilience.circuit_breaker import CircuitBreaker
from core.resilience.retry import RetryConfig, retry_async

T = TypeVar("T")


class ResilientExecutor:
    """Retries inside a circuit breaker.

    One exhausted retry sequence counts as a single breaker failure.
    """

    def __init__(
        self,
        name: str = "default",
        retry_config: Optional[RetryConfig] = None,
        breaker: Optional[CircuitBreaker] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name = name
        self.retry_config = retry_config or RetryConfig()
        self.breaker = breaker or CircuitBreaker(name)
        self._sleep = sleep

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.breaker.execute(
            lambda: retry_async(operation, self.retry_config, self._sleep, label=self.name)
        )

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "maxRetries": self.retry_config.max_retries,
            "circuitBreaker": self.breaker.get_stats(),
        }

    # =========================================================================
    # Presets
    # =========================================================================

    @classmethod
    def for_sap(cls, name: str = "sap", **kwargs) -> "ResilientExecutor":
        return cls(
            name,
            RetryConfig(
                max_retries=3,
                base_delay=0.5,
                max_delay=10.0,
                retryable_codes=("ECONNRESET", "ETIMEDOUT", "ECONNREFUSED", "RFC_COMMUNICATION_FAILURE"),
            ),
            CircuitBreaker(name, failure_threshold=5, reset_timeout=30.0),
            **kwargs,
        )

    @classmethod
    def for_m3(cls, name: str = "m3", **kwargs) -> "ResilientExecutor":
        return cls(
            name,
            RetryConfig(max_retries=3, base_delay=0.3, max_delay=8.0, retryable_codes=("ERR_M3_API", "ECONNRESET", "ETIMEDOUT")),
            CircuitBreaker(name, failure_threshold=5, reset_timeout=30.0),
            **kwargs,
        )

    @classmethod
    def for_ion(cls, name: str = "ion", **kwargs) -> "ResilientExecutor":
        return cls(
            name,
            RetryConfig(max_retries=3, base_delay=0.5, max_delay=10.0, retryable_codes=("ERR_ION", "ECONNRESET", "ETIMEDOUT")),
            CircuitBreaker(name, failure_threshold=5, reset_timeout=30.0),
            **kwargs,
        )

    @classmethod
    def for_db(cls, name: str = "db", **kwargs) -> "ResilientExecutor":
        return cls(
            name,
            RetryConfig(max_retries=2, base_delay=0.5, max_delay=5.0),
            CircuitBreaker(name, failure_threshold=3, reset_timeout=60.0),
            **kwargs,
        )
