"""Pool of opened RFC clients for parallel extraction."""

import logging
from typing import Any, Callable, Dict, Optional

from connectors.rfc.client import RfcClient
from core.resilience.pool import ConnectionPool

logger = logging.getLogger(__name__)


class RfcPool:
    """``ConnectionPool`` of ``RfcClient`` sessions sharing one destination.

    Usage:
        pool = RfcPool(params, size=5)
        info = await pool.call("RFC_SYSTEM_INFO")
        await pool.drain()
    """

    def __init__(
        self,
        params: Dict[str, Any],
        size: int = 5,
        acquire_timeout: float = 10.0,
        call_timeout: float = 30.0,
        client_factory: Optional[Callable[[], RfcClient]] = None,
        **client_options,
    ):
        self.params = params
        self._client_factory = client_factory or (
            lambda: RfcClient(params, call_timeout=call_timeout, **client_options)
        )
        self._destination: Optional[str] = None
        self.pool: ConnectionPool[RfcClient] = ConnectionPool(
            self._open_client,
            size=size,
            acquire_timeout=acquire_timeout,
            close=lambda client: client.close(),
            is_alive=lambda client: client.is_alive,
            name="rfc",
        )

    async def _open_client(self) -> RfcClient:
        client = self._client_factory()
        await client.open()
        self._destination = client.destination
        return client

    @property
    def destination(self) -> str:
        if self._destination is None:
            self._destination = self._client_factory().destination
        return self._destination

    async def acquire(self) -> RfcClient:
        return await self.pool.acquire()

    async def release(self, client: RfcClient) -> None:
        await self.pool.release(client)

    def connection(self):
        return self.pool.connection()

    async def call(self, function_name: str, **params) -> Dict[str, Any]:
        async with self.pool.connection() as client:
            return await client.call(function_name, **params)

    async def ping(self) -> bool:
        try:
            async with self.pool.connection() as client:
                return await client.ping()
        except Exception as e:
            logger.debug(f"RFC pool ping failed: {e}")
            return False

    async def drain(self) -> None:
        await self.pool.drain()

    def get_stats(self) -> dict:
        return self.pool.get_stats()
