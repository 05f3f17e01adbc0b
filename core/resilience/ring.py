"""Bounded FIFO ring guarded by a lock."""

from collections import deque
from threading import Lock
from typing import Callable, Deque, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


class BoundedRing(Generic[T]):
    """Keeps the last ``capacity`` items; the oldest is evicted first."""

    def __init__(self, capacity: int = 1000, items: Optional[Iterable[T]] = None):
        if capacity < 1:
            raise ValueError("Capacity must be at least 1")
        self.capacity = capacity
        self._items: Deque[T] = deque(items or (), maxlen=capacity)
        self._lock = Lock()

    def append(self, item: T) -> None:
        with self._lock:
            self._items.append(item)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()

    def snapshot(self) -> List[T]:
        with self._lock:
            return list(self._items)

    def last(self, count: Optional[int] = None, predicate: Optional[Callable[[T], bool]] = None) -> List[T]:
        """Most recent ``count`` items (matching ``predicate``), oldest first."""
        items = self.snapshot()
        if predicate is not None:
            items = [item for item in items if predicate(item)]
        if count is not None:
            items = items[-count:] if count > 0 else []
        return items

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self):
        return iter(self.snapshot())
