"""Progress bus.

Publish/subscribe fabric for run progress. Every emitted event gets a
monotonic id, lands in a bounded history and is fanned out to in-process
listeners and to server-sent-event (SSE) subscribers.

Usage:
    bus = ProgressBus(max_history=1000)
    bus.on("extraction:", lambda event: print(event.type))
    bus.emit(EventType.EXTRACTION_START, {"extractorId": "FI_GL_ACCOUNTS"})

    client_id = bus.connect_sse(stream, replay_count=5)
"""

import asyncio
import itertools
import json
import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from threading import RLock
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from core.clock import utc_now_iso
from core.resilience.ring import BoundedRing

logger = logging.getLogger(__name__)

SSE_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
}


class EventType(str, Enum):
    """Well-known event types. Any ``area:action`` string may be emitted."""
    EXTRACTION_START = "extraction:start"
    EXTRACTION_PROGRESS = "extraction:progress"
    EXTRACTION_COMPLETE = "extraction:complete"
    EXTRACTION_ERROR = "extraction:error"
    MIGRATION_START = "migration:start"
    MIGRATION_PROGRESS = "migration:progress"
    MIGRATION_COMPLETE = "migration:complete"
    MIGRATION_ERROR = "migration:error"
    AGENT_START = "agent:start"
    AGENT_PROGRESS = "agent:progress"
    AGENT_COMPLETE = "agent:complete"
    SYSTEM_HEALTH = "system:health"
    SYSTEM_STATUS = "system:status"


@dataclass(frozen=True)
class ProgressEvent:
    id: int
    type: str
    data: Any
    timestamp: str

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "type": self.type, "data": self.data, "timestamp": self.timestamp}

    def to_sse(self) -> str:
        return format_sse(self.type, self.to_dict())


def format_sse(event: str, payload: Any) -> str:
    """One SSE frame: ``event:`` line, ``data:`` line, blank line."""
    return f"event: {event}\ndata: {json.dumps(payload, default=str)}\n\n"


Listener = Callable[[ProgressEvent], Any]


def _matches(pattern: Optional[str], event_type: str) -> bool:
    if not pattern or pattern == "*":
        return True
    if pattern.endswith(":"):
        return event_type.startswith(pattern)
    return event_type == pattern


class ProgressBus:
    """Event bus with bounded replay history and SSE fan-out."""

    def __init__(self, max_history: int = 1000):
        self.max_history = max_history
        self._history: BoundedRing[ProgressEvent] = BoundedRing(max_history)
        self._ids = itertools.count(1)
        self._listeners: List[Tuple[str, Listener]] = []
        self._clients: Dict[str, Tuple[Any, Optional[str]]] = {}
        # held across the whole emit so every subscriber sees one total order
        self._emit_lock = RLock()

    # =========================================================================
    # Emit / listen
    # =========================================================================

    def emit(self, event_type: Union[str, EventType], data: Any = None) -> ProgressEvent:
        """Record an event and broadcast it. Subscriber failures never propagate."""
        type_name = event_type.value if isinstance(event_type, EventType) else str(event_type)
        with self._emit_lock:
            event = ProgressEvent(
                id=next(self._ids),
                type=type_name,
                data=data if data is not None else {},
                timestamp=utc_now_iso(),
            )
            self._history.append(event)

            for pattern, listener in list(self._listeners):
                if not _matches(pattern, type_name):
                    continue
                try:
                    listener(event)
                except Exception as e:
                    logger.warning(f"Progress listener failed on {type_name}: {e}")

            frame = event.to_sse()
            for client_id, (stream, prefix) in list(self._clients.items()):
                if prefix and not type_name.startswith(prefix):
                    continue
                self._write(client_id, stream, frame)
        return event

    def on(self, pattern: str, listener: Listener) -> Callable[[], None]:
        """Register a listener for an exact type, an ``area:`` prefix or ``*``.

        Returns a function that unregisters it.
        """
        entry = (pattern, listener)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def off(self, pattern: str, listener: Listener) -> None:
        entry = (pattern, listener)
        if entry in self._listeners:
            self._listeners.remove(entry)

    def get_history(self, count: Optional[int] = None, type_prefix: Optional[str] = None) -> List[ProgressEvent]:
        """Last ``count`` events (optionally those whose type starts with ``type_prefix``), in emission order."""
        predicate = (lambda e: e.type.startswith(type_prefix)) if type_prefix else None
        return self._history.last(count, predicate)

    def clear(self) -> None:
        self._history.clear()

    # =========================================================================
    # SSE subscribers
    # =========================================================================

    def connect_sse(self, stream: Any, replay_count: int = 50, type_prefix: Optional[str] = None) -> str:
        """Attach an SSE stream.

        ``stream`` needs ``write(text)``; ``set_headers(dict)`` and
        ``on_close(callback)`` are used when present. Sends a ``connected``
        frame, replays recent matching events, then receives live events.
        Returns the client id.
        """
        client_id = uuid.uuid4().hex[:12]

        if hasattr(stream, "set_headers"):
            stream.set_headers(dict(SSE_HEADERS))

        with self._emit_lock:
            if not self._write(client_id, stream, format_sse("connected", {"clientId": client_id})):
                return client_id
            for event in self.get_history(replay_count, type_prefix):
                if not self._write(client_id, stream, event.to_sse()):
                    return client_id
            self._clients[client_id] = (stream, type_prefix)

        if hasattr(stream, "on_close"):
            stream.on_close(lambda: self.disconnect(client_id))

        logger.debug(f"SSE client {client_id} connected ({self.client_count} active)")
        return client_id

    def disconnect(self, client_id: str) -> bool:
        removed = self._clients.pop(client_id, None) is not None
        if removed:
            logger.debug(f"SSE client {client_id} detached")
        return removed

    @property
    def client_count(self) -> int:
        return len(self._clients)

    def _write(self, client_id: str, stream: Any, frame: str) -> bool:
        try:
            stream.write(frame)
            return True
        except Exception as e:
            logger.info(f"SSE client {client_id} write failed, detaching: {e}")
            self.disconnect(client_id)
            return False


class QueueSSEStream:
    """SSE stream backed by an asyncio queue, consumed as an async iterator.

    Suitable as the body of a streaming HTTP response. A full queue makes
    ``write`` raise, which detaches the subscriber from the bus.
    """

    def __init__(self, max_pending: int = 1000):
        self.headers: Dict[str, str] = {}
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=max_pending)
        self._closed = False
        self._close_callbacks: List[Callable[[], Any]] = []

    def set_headers(self, headers: Dict[str, str]) -> None:
        self.headers.update(headers)

    def write(self, chunk: str) -> None:
        if self._closed:
            raise ConnectionError("stream closed")
        self._queue.put_nowait(chunk)

    def on_close(self, callback: Callable[[], Any]) -> None:
        self._close_callbacks.append(callback)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for callback in self._close_callbacks:
            callback()
        if not self._queue.full():
            # wake a consumer blocked on an empty queue
            self._queue.put_nowait(None)

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aiter__(self):
        try:
            while not (self._closed and self._queue.empty()):
                chunk = await self._queue.get()
                if chunk is None:
                    break
                yield chunk
        finally:
            self.close()
