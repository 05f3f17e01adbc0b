"""
Resilience Primitive Tests

Validates the building blocks every protocol client sits on:
1. Circuit breaker opens after N failures, fails fast, probes when half-open
2. Retry honors its budget and never retries fatal errors
3. ResilientExecutor counts one exhausted retry sequence as one breaker failure
4. Connection pool: bounded size, FIFO hand-over, acquire timeout, drain
5. Bounded ring and cancellation token
"""

import asyncio

import pytest

from core.errors import (
    AuthenticationError,
    CircuitBreakerOpenError,
    OperationCancelledError,
    PoolAcquireTimeoutError,
    PoolDrainedError,
    TableReadError,
)
from core.resilience import (
    BoundedRing,
    CancellationToken,
    CircuitBreaker,
    CircuitState,
    ConnectionPool,
    ResilientExecutor,
    RetryConfig,
    retry_async,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


async def no_sleep(delay: float) -> None:
    return None


class TestCircuitBreaker:
    """Breaker state machine."""

    def test_opens_after_threshold_and_fails_fast(self):
        """Three consecutive failures open the breaker; the next call never reaches the operation."""
        breaker = CircuitBreaker("t", failure_threshold=3, reset_timeout=30)
        calls = []

        async def failing():
            calls.append(1)
            raise TableReadError("boom")

        async def scenario():
            for _ in range(3):
                with pytest.raises(TableReadError):
                    await breaker.execute(failing)
            with pytest.raises(CircuitBreakerOpenError) as exc:
                await breaker.execute(failing)
            return exc.value

        err = asyncio.run(scenario())
        assert breaker.state == CircuitState.OPEN
        assert len(calls) == 3
        assert err.details["circuit"] == "t"

    def test_half_open_probe_success_closes(self):
        clock = FakeClock()
        transitions = []
        breaker = CircuitBreaker(
            "probe", failure_threshold=1, reset_timeout=10, clock=clock,
            on_state_change=lambda old, new: transitions.append((old, new)),
        )

        async def fail():
            raise TableReadError("down")

        async def ok():
            return "pong"

        async def scenario():
            with pytest.raises(TableReadError):
                await breaker.execute(fail)
            clock.now = 11
            return await breaker.execute(ok)

        assert asyncio.run(scenario()) == "pong"
        assert breaker.state == CircuitState.CLOSED
        assert (CircuitState.OPEN, CircuitState.HALF_OPEN) in transitions
        assert (CircuitState.HALF_OPEN, CircuitState.CLOSED) in transitions

    def test_half_open_probe_failure_reopens(self):
        clock = FakeClock()
        breaker = CircuitBreaker("probe", failure_threshold=1, reset_timeout=10, clock=clock)

        async def fail():
            raise TableReadError("down")

        async def scenario():
            with pytest.raises(TableReadError):
                await breaker.execute(fail)
            clock.now = 11
            with pytest.raises(TableReadError):
                await breaker.execute(fail)

        asyncio.run(scenario())
        assert breaker.state == CircuitState.OPEN

    def test_success_resets_failure_count(self):
        breaker = CircuitBreaker("t", failure_threshold=3)

        async def fail():
            raise TableReadError("x")

        async def ok():
            return 1

        async def scenario():
            for _ in range(2):
                with pytest.raises(TableReadError):
                    await breaker.execute(fail)
            await breaker.execute(ok)

        asyncio.run(scenario())
        assert breaker.failure_count == 0
        assert breaker.get_stats()["state"] == "closed"


class TestRetry:
    """Retry with backoff."""

    def test_retries_until_success(self):
        attempts = []

        async def flaky():
            attempts.append(1)
            if len(attempts) < 3:
                raise ConnectionResetError("reset")
            return "ok"

        result = asyncio.run(retry_async(flaky, RetryConfig(max_retries=3), sleep=no_sleep))
        assert result == "ok"
        assert len(attempts) == 3

    def test_budget_exhausted_reraises_last_error(self):
        attempts = []

        async def always():
            attempts.append(1)
            raise TimeoutError("slow")

        with pytest.raises(TimeoutError):
            asyncio.run(retry_async(always, RetryConfig(max_retries=2), sleep=no_sleep))
        assert len(attempts) == 3

    def test_authentication_not_retried(self):
        attempts = []

        async def denied():
            attempts.append(1)
            raise AuthenticationError("401")

        with pytest.raises(AuthenticationError):
            asyncio.run(retry_async(denied, RetryConfig(max_retries=5), sleep=no_sleep))
        assert len(attempts) == 1

    def test_retryable_codes_filter(self):
        config = RetryConfig(retryable_codes=("ECONNRESET", "RFC_COMMUNICATION_FAILURE"))
        assert config.is_retryable(ConnectionResetError())
        assert config.is_retryable(TableReadError("RFC_COMMUNICATION_FAILURE on call"))
        assert not config.is_retryable(TableReadError("TABLE_NOT_AVAILABLE"))

    def test_delay_is_capped(self):
        config = RetryConfig(base_delay=1.0, max_delay=4.0, jitter=0)
        assert config.get_delay(0) == 1.0
        assert config.get_delay(1) == 2.0
        assert config.get_delay(10) == 4.0


class TestResilientExecutor:
    """Retry inside breaker."""

    def test_exhausted_retries_count_once(self):
        executor = ResilientExecutor(
            "exec",
            RetryConfig(max_retries=2),
            CircuitBreaker("exec", failure_threshold=2),
            sleep=no_sleep,
        )
        attempts = []

        async def fail():
            attempts.append(1)
            raise TimeoutError("slow")

        async def scenario():
            with pytest.raises(TimeoutError):
                await executor.execute(fail)

        asyncio.run(scenario())
        assert len(attempts) == 3
        assert executor.breaker.failure_count == 1
        assert executor.breaker.state == CircuitState.CLOSED

    def test_presets(self):
        sap = ResilientExecutor.for_sap()
        assert sap.breaker.failure_threshold == 5
        assert "RFC_COMMUNICATION_FAILURE" in sap.retry_config.retryable_codes
        assert ResilientExecutor.for_db().breaker.failure_threshold == 3


class TestConnectionPool:
    """Bounded pool."""

    def test_reuses_released_client(self):
        created = []

        async def factory():
            created.append(object())
            return created[-1]

        async def scenario():
            pool = ConnectionPool(factory, size=2)
            first = await pool.acquire()
            await pool.release(first)
            second = await pool.acquire()
            return first, second, pool.get_stats()

        first, second, stats = asyncio.run(scenario())
        assert first is second
        assert len(created) == 1
        assert stats["busy"] == 1

    def test_waiter_receives_released_client(self):
        async def factory():
            return object()

        async def scenario():
            pool = ConnectionPool(factory, size=1, acquire_timeout=1.0)
            held = await pool.acquire()
            waiter = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0)
            await pool.release(held)
            return held, await waiter

        held, handed = asyncio.run(scenario())
        assert held is handed

    def test_distinct_clients_until_full(self):
        created = []

        async def factory():
            created.append(object())
            return created[-1]

        async def scenario():
            pool = ConnectionPool(factory, size=3, acquire_timeout=1.0)
            clients = [await pool.acquire() for _ in range(3)]
            extra = asyncio.create_task(pool.acquire())
            await asyncio.sleep(0)
            parked = not extra.done()
            waiting = pool.get_stats()["waiting"]
            await pool.release(clients[1])
            return clients, await extra, parked, waiting

        clients, extra, parked, waiting = asyncio.run(scenario())
        assert len({id(c) for c in clients}) == 3
        assert parked and waiting == 1
        assert extra is clients[1]
        assert len(created) == 3

    def test_waiters_served_in_arrival_order(self):
        async def factory():
            return object()

        async def scenario():
            pool = ConnectionPool(factory, size=1, acquire_timeout=1.0)
            held = await pool.acquire()
            served = []
            waiters = []
            for label in ("first", "second", "third"):
                task = asyncio.create_task(pool.acquire())
                task.add_done_callback(lambda t, label=label: served.append(label))
                waiters.append(task)
                await asyncio.sleep(0)

            client = held
            for task in waiters:
                await pool.release(client)
                client = await task
            await pool.release(client)
            return served, client is held, pool.get_stats()

        served, same_client, stats = asyncio.run(scenario())
        assert served == ["first", "second", "third"]
        assert same_client
        assert stats["total"] == 1 and stats["available"] == 1 and stats["waiting"] == 0

    def test_acquire_timeout(self):
        async def factory():
            return object()

        async def scenario():
            pool = ConnectionPool(factory, size=1, acquire_timeout=0.05)
            await pool.acquire()
            await pool.acquire()

        with pytest.raises(PoolAcquireTimeoutError):
            asyncio.run(scenario())

    def test_drain_rejects_acquire_and_closes_idle(self):
        closed = []

        async def factory():
            return object()

        async def scenario():
            pool = ConnectionPool(factory, size=2, close=closed.append)
            client = await pool.acquire()
            await pool.release(client)
            await pool.drain()
            with pytest.raises(PoolDrainedError):
                await pool.acquire()
            return pool

        pool = asyncio.run(scenario())
        assert pool.drained
        assert len(closed) == 1


class TestRingAndToken:
    """History ring and cancellation token."""

    def test_ring_evicts_oldest(self):
        ring = BoundedRing(3)
        for i in range(5):
            ring.append(i)
        assert ring.snapshot() == [2, 3, 4]
        assert ring.last(2) == [3, 4]
        assert ring.last(None, lambda x: x % 2 == 0) == [2, 4]
        assert ring.last(0) == []

    def test_token(self):
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel("user abort")
        assert token.cancelled
        with pytest.raises(OperationCancelledError) as exc:
            token.raise_if_cancelled()
        assert exc.value.details["reason"] == "user abort"
