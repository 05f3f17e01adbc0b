"""Progress bus: event fan-out with bounded replay."""

from core.progress.bus import EventType, ProgressBus, ProgressEvent, QueueSSEStream

__all__ = ["EventType", "ProgressBus", "ProgressEvent", "QueueSSEStream"]
