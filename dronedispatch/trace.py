"""Bounded buffer of map trace points sampled around the agents.

Each tick records one jittered point near every agent, standing in for a
sensor scan. The buffer keeps the newest ``capacity`` points and evicts the
oldest first.
"""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from itertools import islice
from typing import Any

from dronedispatch.config import TRACE_CAPACITY
from dronedispatch.geo import GeoPoint


@dataclass(frozen=True)
class MapPoint:
    position: GeoPoint
    timestamp: datetime

    def as_dict(self) -> dict[str, Any]:
        return {**self.position.as_dict(), "t": self.timestamp.isoformat()}


class TraceBuffer:
    """FIFO ring buffer of ``MapPoint`` samples."""

    def __init__(self, capacity: int = TRACE_CAPACITY, lock: threading.RLock | None = None):
        if capacity <= 0:
            msg = "Trace capacity must be positive"
            raise ValueError(msg)
        self._lock = lock or threading.RLock()
        self._points: deque[MapPoint] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return self._points.maxlen

    def __len__(self) -> int:
        return len(self._points)

    def append(self, point: MapPoint) -> None:
        with self._lock:
            self._points.append(point)

    def recent(self, limit: int | None = None) -> list[MapPoint]:
        """The newest ``limit`` points, oldest first. ``None`` returns all."""
        with self._lock:
            if limit is None:
                return list(self._points)
            if limit <= 0:
                return []
            skip = max(0, len(self._points) - limit)
            return list(islice(self._points, skip, None))
