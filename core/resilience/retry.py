"""Retry with exponential backoff and jitter."""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Tuple, TypeVar

from core.errors import (
    AuthenticationError,
    CircuitBreakerOpenError,
    ConfigurationError,
    ForensicsError,
    OperationCancelledError,
    RuleValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Python exception types standing in for socket-level error codes
_ERRNO_ALIASES = {
    "ECONNRESET": (ConnectionResetError, BrokenPipeError),
    "ECONNREFUSED": (ConnectionRefusedError,),
    "ETIMEDOUT": (TimeoutError, asyncio.TimeoutError),
}

# Never retried, whatever the configuration says
_NON_RETRYABLE = (
    AuthenticationError,
    CircuitBreakerOpenError,
    ConfigurationError,
    RuleValidationError,
    OperationCancelledError,
)


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 0.2  # seconds
    max_delay: float = 5.0  # seconds
    exponential_base: float = 2.0
    jitter: float = 0.25  # +/- fraction of the computed delay
    retry_on_status: Tuple[int, ...] = (429, 500, 502, 503, 504)
    retryable_codes: Tuple[str, ...] = ()  # empty means any non-fatal error

    def get_delay(self, attempt: int, rng: Callable[[], float] = random.random) -> float:
        """Calculate delay for retry attempt (exponential backoff, capped, jittered)."""
        delay = min(self.base_delay * (self.exponential_base ** attempt), self.max_delay)
        if self.jitter:
            delay *= 1 + self.jitter * (2 * rng() - 1)
        return max(0.0, delay)

    def is_retryable(self, error: BaseException) -> bool:
        if isinstance(error, _NON_RETRYABLE):
            return False
        if not self.retryable_codes:
            return True
        code = getattr(error, "code", None)
        text = str(error)
        for wanted in self.retryable_codes:
            if code == wanted or wanted in text:
                return True
            aliases = _ERRNO_ALIASES.get(wanted)
            if aliases and isinstance(error, aliases):
                return True
        return False


async def retry_async(
    operation: Callable[[], Awaitable[T]],
    config: Optional[RetryConfig] = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    label: str = "operation",
) -> T:
    """Run ``operation`` until it succeeds or the retry budget is spent.

    The last error is re-raised unchanged.
    """
    config = config or RetryConfig()
    attempt = 0
    while True:
        try:
            return await operation()
        except Exception as e:
            if attempt >= config.max_retries or not config.is_retryable(e):
                raise
            delay = config.get_delay(attempt)
            code = e.code if isinstance(e, ForensicsError) else type(e).__name__
            logger.warning(
                f"{label} failed ({code}: {e}), "
                f"retrying in {delay:.2f}s (attempt {attempt + 1}/{config.max_retries})"
            )
            await sleep(delay)
            attempt += 1
