"""Circuit breaker.

Fail-fast envelope around a remote operation. After ``failure_threshold``
consecutive failures the breaker opens and rejects calls without invoking
them; once ``reset_timeout`` seconds have passed a single probe is let
through (half-open). The probe's outcome closes or re-opens the breaker.

Usage:
    breaker = CircuitBreaker("sap-rfc", failure_threshold=5, reset_timeout=30)
    result = await breaker.execute(lambda: client.invoke("RFC_PING"))
"""

import logging
import time
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from core.errors import CircuitBreakerOpenError
from core.observability.metrics import record_breaker_trip

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CircuitState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


StateChangeCallback = Callable[[CircuitState, CircuitState], None]


class CircuitBreaker:
    """Per-client circuit breaker.

    State transitions happen synchronously between awaits, so they are
    serialized on the event loop.
    """

    def __init__(
        self,
        name: str = "default",
        failure_threshold: int = 5,
        reset_timeout: float = 30.0,
        half_open_max: int = 1,
        on_state_change: Optional[StateChangeCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.name = name
        self.failure_threshold = failure_threshold
        self.reset_timeout = reset_timeout
        self.half_open_max = half_open_max
        self._on_state_change = on_state_change
        self._clock = clock

        self._state = CircuitState.CLOSED
        self._failure_count = 0
        self._success_count = 0
        self._opened_at: Optional[float] = None
        self._last_failure_at: Optional[float] = None
        self._half_open_in_flight = 0

    @property
    def state(self) -> CircuitState:
        return self._state

    @property
    def failure_count(self) -> int:
        return self._failure_count

    def _transition(self, new_state: CircuitState) -> None:
        old_state = self._state
        if old_state == new_state:
            return
        self._state = new_state
        logger.info(f"Circuit '{self.name}' {old_state.value} -> {new_state.value}")
        if self._on_state_change:
            try:
                self._on_state_change(old_state, new_state)
            except Exception as e:
                logger.warning(f"Circuit '{self.name}' state listener failed: {e}")

    def _open(self) -> None:
        self._opened_at = self._clock()
        self._half_open_in_flight = 0
        self._transition(CircuitState.OPEN)
        record_breaker_trip(self.name)

    def _before_call(self) -> None:
        """Admit or reject a call according to the current state."""
        if self._state == CircuitState.OPEN:
            elapsed = self._clock() - (self._opened_at or 0.0)
            if elapsed < self.reset_timeout:
                raise CircuitBreakerOpenError(
                    f"Circuit '{self.name}' is open",
                    details={
                        "circuit": self.name,
                        "retryIn": round(self.reset_timeout - elapsed, 3),
                        "failureCount": self._failure_count,
                    },
                )
            self._half_open_in_flight = 0
            self._transition(CircuitState.HALF_OPEN)

        if self._state == CircuitState.HALF_OPEN:
            if self._half_open_in_flight >= self.half_open_max:
                raise CircuitBreakerOpenError(
                    f"Circuit '{self.name}' is half-open, probe in flight",
                    details={"circuit": self.name, "failureCount": self._failure_count},
                )
            self._half_open_in_flight += 1

    def _record_success(self) -> None:
        self._success_count += 1
        if self._state == CircuitState.HALF_OPEN:
            self._half_open_in_flight = 0
            self._failure_count = 0
            self._opened_at = None
            self._transition(CircuitState.CLOSED)
        else:
            self._failure_count = 0

    def _record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_at = self._clock()
        if self._state == CircuitState.HALF_OPEN:
            self._open()
        elif self._failure_count >= self.failure_threshold:
            self._open()

    async def execute(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run ``operation`` under the breaker.

        Raises:
            CircuitBreakerOpenError: breaker open, operation not invoked
        """
        self._before_call()
        try:
            result = await operation()
        except Exception:
            self._record_failure()
            raise
        except BaseException:
            # cancelled: free the probe slot, the remote was not judged
            if self._state == CircuitState.HALF_OPEN:
                self._half_open_in_flight = max(0, self._half_open_in_flight - 1)
            raise
        self._record_success()
        return result

    def reset(self) -> None:
        """Force the breaker closed and clear counters."""
        self._failure_count = 0
        self._success_count = 0
        self._opened_at = None
        self._half_open_in_flight = 0
        self._transition(CircuitState.CLOSED)

    def get_stats(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "state": self._state.value,
            "failureCount": self._failure_count,
            "successCount": self._success_count,
            "openedAt": self._opened_at,
            "lastFailureAt": self._last_failure_at,
        }
