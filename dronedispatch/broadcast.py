"""Publish/subscribe fan-out of simulation state.

The broadcaster decouples the simulation core from any transport. A transport
layer subscribes to a topic and forwards each payload to its own remote
observers.

Delivery is best-effort and at most once per subscriber per event. Every
subscription owns a bounded queue and ``publish`` only ever performs
non-blocking puts: when a subscriber's queue is full that subscriber misses
the event and the publisher moves on, so a slow observer never stalls the
clock or the dispatcher.

Example:
    >>> broadcaster = Broadcaster()
    >>> fleet = broadcaster.subscribe(FLEET_UPDATE)
    >>> broadcaster.publish(FLEET_UPDATE, {"agents": []})
    1
    >>> fleet.get(timeout=1.0)
    {'agents': []}
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Iterator
from typing import Any

from dronedispatch.config import SUBSCRIBER_QUEUE_SIZE
from dronedispatch.errors import InvalidInput

log = logging.getLogger(__name__)

FLEET_UPDATE = "fleet-update"
MAP_UPDATE = "map-update"
NEW_REQUEST = "new-request"
TOPICS = (FLEET_UPDATE, MAP_UPDATE, NEW_REQUEST)

_CLOSED = object()


class Subscription:
    """Stream of payloads published on one topic.

    Iterating blocks until the next payload and stops once the subscription
    is closed.

    Attributes:
        topic: Topic this subscription listens to.
        dropped: Number of events missed because the queue was full.
    """

    def __init__(self, broadcaster: Broadcaster, topic: str, maxsize: int):
        self.topic = topic
        self.dropped = 0
        self._broadcaster = broadcaster
        self._queue: queue.Queue[Any] = queue.Queue(maxsize)
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def offer(self, payload: Any) -> bool:
        """Enqueue ``payload`` without blocking; return whether it was kept."""
        if self.closed:
            return False
        try:
            self._queue.put_nowait(payload)
        except queue.Full:
            self.dropped += 1
            log.debug("Subscriber on %s is full, dropped event (%d total)", self.topic, self.dropped)
            return False
        return True

    def get(self, timeout: float | None = None) -> Any:
        """Next payload.

        Raises:
            queue.Empty: If nothing arrives within ``timeout``, or the
                subscription is closed.
        """
        if self.closed and self._queue.empty():
            raise queue.Empty
        item = self._queue.get(timeout=timeout)
        if item is _CLOSED:
            raise queue.Empty
        return item

    def drain(self) -> list[Any]:
        """Every payload currently queued, without waiting."""
        items = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                return items
            if item is not _CLOSED:
                items.append(item)

    def close(self) -> None:
        if self.closed:
            return
        self._closed.set()
        self._broadcaster.unsubscribe(self)
        # Wake a blocked reader. A publish already past the closed check may
        # refill the queue, so evict until the sentinel fits.
        while True:
            try:
                self._queue.put_nowait(_CLOSED)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                except queue.Empty:
                    pass

    def __iter__(self) -> Iterator[Any]:
        while True:
            try:
                item = self.get()
            except queue.Empty:
                return
            yield item

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


class Broadcaster:
    """Topic-based fan-out to independent subscribers.

    Only the names in ``TOPICS`` are accepted.
    """

    def __init__(self, queue_size: int = SUBSCRIBER_QUEUE_SIZE):
        self.queue_size = queue_size
        self._subscribers: dict[str, list[Subscription]] = {topic: [] for topic in TOPICS}
        self._lock = threading.Lock()

    def subscribe(self, topic: str, maxsize: int | None = None) -> Subscription:
        """Open a subscription on ``topic``.

        Raises:
            InvalidInput: If ``topic`` is not one of ``TOPICS``.
        """
        _check_topic(topic)
        subscription = Subscription(self, topic, maxsize or self.queue_size)
        with self._lock:
            self._subscribers[topic].append(subscription)
        log.debug("New subscriber on %s", topic)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        with self._lock:
            subscribers = self._subscribers.get(subscription.topic, [])
            if subscription in subscribers:
                subscribers.remove(subscription)

    def subscriber_count(self, topic: str) -> int:
        _check_topic(topic)
        with self._lock:
            return len(self._subscribers[topic])

    def publish(self, topic: str, payload: Any) -> int:
        """Offer ``payload`` to every subscriber of ``topic``.

        Returns:
            int: Number of subscribers that accepted the payload.

        Raises:
            InvalidInput: If ``topic`` is not one of ``TOPICS``.
        """
        _check_topic(topic)
        with self._lock:
            subscribers = list(self._subscribers[topic])
        return sum(1 for subscription in subscribers if subscription.offer(payload))


def _check_topic(topic: str) -> None:
    if topic not in TOPICS:
        msg = f"Unknown topic {topic!r}, expected one of {', '.join(TOPICS)}"
        raise InvalidInput(msg)
