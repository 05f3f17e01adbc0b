"""Cooperative cancellation token."""

import asyncio
from typing import Optional

from core.errors import OperationCancelledError


class CancellationToken:
    """Set once by the owner of a run; checked by workers at suspension points."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelledError(
                f"Operation cancelled: {self.reason}", details={"reason": self.reason}
            )

    async def wait(self) -> None:
        await self._event.wait()
