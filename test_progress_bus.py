"""
Progress Bus Tests

Validates event fan-out and replay:
1. Events get monotonic ids and land in a bounded history
2. Listeners match exact types, area prefixes and wildcards; failures are contained
3. SSE subscribers get a connected frame, the last N events, then live events
4. A failing SSE write detaches only that subscriber
5. QueueSSEStream yields frames until closed
"""

import asyncio
import json

import pytest

from core.progress import EventType, ProgressBus, QueueSSEStream


class ListStream:
    """SSE stream collecting frames in memory."""

    def __init__(self):
        self.frames = []
        self.headers = {}
        self.close_callbacks = []

    def set_headers(self, headers):
        self.headers.update(headers)

    def write(self, frame):
        self.frames.append(frame)

    def on_close(self, callback):
        self.close_callbacks.append(callback)

    def events(self):
        parsed = []
        for frame in self.frames:
            event_line, data_line = frame.strip().split("\n")
            parsed.append((event_line[len("event: "):], json.loads(data_line[len("data: "):])))
        return parsed


class BrokenStream:
    def write(self, frame):
        raise BrokenPipeError("client gone")


class TestHistory:
    """Emission and history."""

    def test_ids_monotonic(self):
        bus = ProgressBus()
        ids = [bus.emit("extraction:progress", {"i": i}).id for i in range(5)]
        assert ids == [1, 2, 3, 4, 5]

    def test_history_bounded(self):
        bus = ProgressBus(max_history=10)
        for i in range(25):
            bus.emit(EventType.EXTRACTION_PROGRESS, {"i": i})
        history = bus.get_history()
        assert len(history) == 10
        assert history[0].data == {"i": 15}
        assert history[-1].id == 25

    def test_history_filter_by_prefix(self):
        bus = ProgressBus()
        bus.emit(EventType.EXTRACTION_START, {})
        bus.emit(EventType.MIGRATION_START, {})
        bus.emit(EventType.MIGRATION_COMPLETE, {})
        assert [e.type for e in bus.get_history(type_prefix="migration:")] == ["migration:start", "migration:complete"]
        assert [e.type for e in bus.get_history(1)] == ["migration:complete"]

    def test_event_shape(self):
        event = ProgressBus().emit(EventType.SYSTEM_STATUS)
        payload = event.to_dict()
        assert payload["type"] == "system:status"
        assert payload["data"] == {}
        assert payload["timestamp"].endswith("Z")


class TestListeners:
    """In-process listeners."""

    def test_pattern_matching(self):
        bus = ProgressBus()
        seen = {"exact": [], "prefix": [], "all": []}
        bus.on("migration:complete", lambda e: seen["exact"].append(e.type))
        bus.on("migration:", lambda e: seen["prefix"].append(e.type))
        bus.on("*", lambda e: seen["all"].append(e.type))
        bus.emit(EventType.MIGRATION_START)
        bus.emit(EventType.MIGRATION_COMPLETE)
        bus.emit(EventType.EXTRACTION_START)
        assert seen["exact"] == ["migration:complete"]
        assert seen["prefix"] == ["migration:start", "migration:complete"]
        assert len(seen["all"]) == 3

    def test_listener_failure_contained(self):
        bus = ProgressBus()
        received = []

        def broken(event):
            raise RuntimeError("listener bug")

        bus.on("*", broken)
        bus.on("*", received.append)
        bus.emit("custom:event", {"x": 1})
        assert len(received) == 1

    def test_unsubscribe(self):
        bus = ProgressBus()
        received = []
        unsubscribe = bus.on("*", received.append)
        bus.emit("a:b")
        unsubscribe()
        bus.emit("a:b")
        assert len(received) == 1


class TestSSE:
    """SSE subscribers."""

    def test_replay_last_five_then_live(self):
        bus = ProgressBus()
        for i in range(30):
            bus.emit(EventType.EXTRACTION_PROGRESS, {"i": i})

        stream = ListStream()
        client_id = bus.connect_sse(stream, replay_count=5)
        bus.emit(EventType.EXTRACTION_COMPLETE, {"done": True})

        events = stream.events()
        assert events[0] == ("connected", {"clientId": client_id})
        assert [payload["data"]["i"] for _, payload in events[1:6]] == [25, 26, 27, 28, 29]
        assert events[6][0] == "extraction:complete"
        assert len(events) == 7
        assert stream.headers["Content-Type"] == "text/event-stream"
        assert bus.client_count == 1

    def test_type_filter(self):
        bus = ProgressBus()
        stream = ListStream()
        bus.connect_sse(stream, replay_count=0, type_prefix="migration:")
        bus.emit(EventType.EXTRACTION_START)
        bus.emit(EventType.MIGRATION_START)
        assert [name for name, _ in stream.events()] == ["connected", "migration:start"]

    def test_broken_subscriber_detached(self):
        bus = ProgressBus()
        good = ListStream()
        bus.connect_sse(good, replay_count=0)
        bus.connect_sse(BrokenStream(), replay_count=0)
        bus.emit("a:b")
        assert bus.client_count == 1
        assert [name for name, _ in good.events()] == ["connected", "a:b"]

    def test_close_callback_disconnects(self):
        bus = ProgressBus()
        stream = ListStream()
        bus.connect_sse(stream)
        stream.close_callbacks[0]()
        assert bus.client_count == 0


class TestQueueStream:
    """Async iterator stream."""

    def test_yields_until_closed(self):
        async def scenario():
            bus = ProgressBus()
            bus.emit("a:one")
            stream = QueueSSEStream()
            bus.connect_sse(stream, replay_count=10)
            bus.emit("a:two")
            stream.close()
            return [frame async for frame in stream], bus.client_count

        frames, clients = asyncio.run(scenario())
        assert [f.split("\n")[0] for f in frames] == ["event: connected", "event: a:one", "event: a:two"]
        assert clients == 0

    def test_write_after_close_fails(self):
        stream = QueueSSEStream()
        stream.close()
        assert stream.closed
        with pytest.raises(ConnectionError):
            stream.write("x")
