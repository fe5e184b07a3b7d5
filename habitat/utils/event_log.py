"""Thread-safe, bounded world event log shared with API readers."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass, field
from typing import Any, Iterable


@dataclass(frozen=True, slots=True)
class WorldEvent:
    """A single entry in the world event log."""

    timestamp: float
    room: str
    kind: str
    device_id: str | None = None
    data: dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "room": self.room,
            "kind": self.kind,
            "device_id": self.device_id,
            "data": dict(self.data),
        }


class EventLog:
    """Ordered event log with trim-on-overflow.

    Once the log grows past ``max_size`` entries it is cut back to the
    ``keep`` most recent ones, preserving order. Writers are the world loop
    only; readers snapshot a copy under the lock.
    """

    __slots__ = ("_buffer", "_lock", "_max_size", "_keep")

    def __init__(self, max_size: int = 200, keep: int = 100) -> None:
        if keep > max_size:
            raise ValueError("keep must not exceed max_size")
        self._buffer: deque[WorldEvent] = deque()
        self._lock = threading.Lock()
        self._max_size = max_size
        self._keep = keep

    @property
    def max_size(self) -> int:
        return self._max_size

    def __len__(self) -> int:
        with self._lock:
            return len(self._buffer)

    def append(self, event: WorldEvent) -> None:
        with self._lock:
            self._buffer.append(event)
            self._trim_locked()

    def append_many(self, events: Iterable[WorldEvent]) -> None:
        with self._lock:
            self._buffer.extend(events)
            self._trim_locked()

    def all(self) -> list[WorldEvent]:
        with self._lock:
            return list(self._buffer)

    def since(self, timestamp: float) -> list[WorldEvent]:
        """Return all events with timestamp >= *timestamp*."""
        with self._lock:
            return [e for e in self._buffer if e.timestamp >= timestamp]

    def count_since(self, kind: str, timestamp: float) -> int:
        with self._lock:
            return sum(1 for e in self._buffer if e.kind == kind and e.timestamp >= timestamp)

    def latest(self, count: int = 50) -> list[WorldEvent]:
        """Return the *count* most recent events."""
        with self._lock:
            items = list(self._buffer)
        return items[-count:] if count > 0 else []

    def replace(self, events: Iterable[WorldEvent]) -> None:
        with self._lock:
            self._buffer = deque(events)
            self._trim_locked()

    def clear(self) -> None:
        with self._lock:
            self._buffer.clear()

    # -- internals --

    def _trim_locked(self) -> None:
        if len(self._buffer) <= self._max_size:
            return
        while len(self._buffer) > self._keep:
            self._buffer.popleft()
