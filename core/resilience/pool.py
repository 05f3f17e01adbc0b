"""Generic asyncio connection pool.

Clients are created lazily up to ``size``. When every client is checked out,
callers park in a FIFO waiter queue until a client is released or
``acquire_timeout`` expires.

Usage:
    pool = ConnectionPool(open_client, size=5, acquire_timeout=10.0)
    async with pool.connection() as client:
        await client.call("RFC_PING")
    await pool.drain()
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Awaitable, Callable, Deque, Generic, List, Optional, TypeVar

from core.errors import PoolAcquireTimeoutError, PoolDrainedError

logger = logging.getLogger(__name__)

C = TypeVar("C")


async def _maybe_await(value: Any) -> Any:
    if asyncio.iscoroutine(value) or isinstance(value, asyncio.Future):
        return await value
    return value


class ConnectionPool(Generic[C]):
    """Fixed-size pool with FIFO waiters, acquire timeout and explicit drain."""

    def __init__(
        self,
        factory: Callable[[], Awaitable[C]],
        size: int = 5,
        acquire_timeout: float = 10.0,
        close: Optional[Callable[[C], Any]] = None,
        is_alive: Optional[Callable[[C], bool]] = None,
        name: str = "pool",
    ):
        if size < 1:
            raise ValueError("Pool size must be at least 1")
        self.name = name
        self.size = size
        self.acquire_timeout = acquire_timeout
        self._factory = factory
        self._close = close
        self._is_alive = is_alive or (lambda client: True)

        self._idle: Deque[C] = deque()
        self._busy: List[C] = []
        self._waiters: Deque[asyncio.Future] = deque()
        self._created = 0
        self._drained = False

    @property
    def drained(self) -> bool:
        return self._drained

    def get_stats(self) -> dict:
        return {
            "name": self.name,
            "size": self.size,
            "total": self._created,
            "available": len(self._idle),
            "busy": len(self._busy),
            "waiting": sum(1 for w in self._waiters if not w.done()),
            "drained": self._drained,
        }

    async def _create(self) -> C:
        # reserve the slot before awaiting so concurrent acquires cannot overshoot
        self._created += 1
        try:
            return await self._factory()
        except BaseException:
            self._created -= 1
            raise

    async def _discard(self, client: C) -> None:
        self._created -= 1
        await self._close_quietly(client)

    async def _close_quietly(self, client: C) -> None:
        if self._close is None:
            return
        try:
            await _maybe_await(self._close(client))
        except Exception as e:
            logger.warning(f"Pool '{self.name}': closing client failed: {e}")

    async def acquire(self) -> C:
        """Check out a client.

        Raises:
            PoolDrainedError: the pool was drained
            PoolAcquireTimeoutError: no client became available in time
        """
        if self._drained:
            raise PoolDrainedError(f"Pool '{self.name}' has been drained", details={"pool": self.name})

        while self._idle:
            client = self._idle.popleft()
            if self._is_alive(client):
                self._busy.append(client)
                return client
            await self._discard(client)

        if self._created < self.size:
            client = await self._create()
            self._busy.append(client)
            return client

        loop = asyncio.get_running_loop()
        waiter: asyncio.Future = loop.create_future()
        self._waiters.append(waiter)
        try:
            client = await asyncio.wait_for(asyncio.shield(waiter), timeout=self.acquire_timeout)
        except asyncio.TimeoutError:
            if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                # handed over right at the deadline; give it back
                await self.release(waiter.result())
            else:
                waiter.cancel()
            raise PoolAcquireTimeoutError(
                f"Pool '{self.name}' acquire timed out after {self.acquire_timeout}s",
                details={"timeout": self.acquire_timeout, "stats": self.get_stats()},
            )
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled() and waiter.exception() is None:
                await self.release(waiter.result())
            else:
                waiter.cancel()
            raise
        finally:
            if waiter in self._waiters:
                self._waiters.remove(waiter)
        return client

    async def release(self, client: C) -> None:
        """Return a client; the oldest live waiter receives it directly."""
        if client in self._busy:
            self._busy.remove(client)

        if self._drained:
            self._created -= 1
            await self._close_quietly(client)
            return

        if not self._is_alive(client):
            await self._discard(client)
            if self._next_waiter() is not None:
                # a slot opened up: build a fresh client for the oldest waiter
                try:
                    replacement = await self._create()
                except Exception as e:
                    waiter = self._pop_waiter()
                    if waiter is not None:
                        waiter.set_exception(e)
                    return
                self._hand_over(replacement)
            return

        self._hand_over(client)

    def _next_waiter(self) -> Optional[asyncio.Future]:
        while self._waiters and self._waiters[0].done():
            self._waiters.popleft()
        return self._waiters[0] if self._waiters else None

    def _pop_waiter(self) -> Optional[asyncio.Future]:
        waiter = self._next_waiter()
        if waiter is not None:
            self._waiters.popleft()
        return waiter

    def _hand_over(self, client: C) -> None:
        waiter = self._pop_waiter()
        if waiter is None:
            self._idle.append(client)
            return
        self._busy.append(client)
        waiter.set_result(client)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[C]:
        """Acquire a client for the duration of the block; always released."""
        client = await self.acquire()
        try:
            yield client
        finally:
            await self.release(client)

    async def drain(self) -> None:
        """Close all clients and reject every future acquire."""
        self._drained = True
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_exception(
                    PoolDrainedError(f"Pool '{self.name}' has been drained", details={"pool": self.name})
                )
        while self._idle:
            client = self._idle.popleft()
            self._created -= 1
            await self._close_quietly(client)
        # busy clients are closed as they come back through release()
        logger.info(f"Pool '{self.name}' drained ({len(self._busy)} client(s) still checked out)")
