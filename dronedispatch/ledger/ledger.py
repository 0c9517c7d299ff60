"""Request ledger: the single owner of request records.

Requests are kept for the lifetime of the process as a log; nothing is ever
removed. Status changes are validated against ``REQUEST_LIFECYCLE``.
"""

from __future__ import annotations

import threading
import uuid
from collections.abc import Callable, Iterable
from datetime import UTC, datetime

from dronedispatch.errors import InvalidInput, InvalidTransition, NotFound
from dronedispatch.geo import GeoPoint

from .request import Request, Requester, RequestStatus


def utcnow() -> datetime:
    return datetime.now(UTC)


class RequestLedger:
    """Thread-safe store of delivery requests in creation order."""

    def __init__(
        self,
        lock: threading.RLock | None = None,
        clock: Callable[[], datetime] = utcnow,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self._lock = lock or threading.RLock()
        self._clock = clock
        self._id_factory = id_factory
        self._requests: dict[str, Request] = {}

    def __len__(self) -> int:
        return len(self._requests)

    def create(
        self,
        requester: Requester,
        position: object,
        supplies: Iterable[str] = (),
    ) -> Request:
        """Record a new pending request.

        Args:
            requester: Contact details, stored as given.
            position: Delivery destination as accepted by ``GeoPoint.coerce``.
            supplies: Requested items; duplicates are collapsed.

        Returns:
            Request: Snapshot of the created request.

        Raises:
            InvalidInput: If ``position`` is missing or not finite, or an item
                in ``supplies`` is not a string. Nothing is recorded.
        """
        position = GeoPoint.coerce(position)
        if supplies is None:
            supplies = ()
        if isinstance(supplies, str):
            supplies = (supplies,)
        if not isinstance(supplies, Iterable):
            msg = f"supplies must be a list of strings, got {type(supplies).__name__}"
            raise InvalidInput(msg)
        items = tuple(dict.fromkeys(supplies))
        for item in items:
            if not isinstance(item, str):
                msg = f"supplies must be strings, got {type(item).__name__}"
                raise InvalidInput(msg)

        with self._lock:
            request = Request(
                id=self._id_factory(),
                requester=requester,
                position=position,
                supplies=items,
                created_at=self._clock(),
            )
            self._requests[request.id] = request
            return request.snapshot()

    def list(self) -> list[Request]:
        with self._lock:
            return [request.snapshot() for request in self._requests.values()]

    def get(self, request_id: str) -> Request:
        """Snapshot of one request.

        Raises:
            NotFound: If ``request_id`` is unknown.
        """
        with self._lock:
            return self._require(request_id).snapshot()

    def find(self, request_id: str | None) -> Request | None:
        with self._lock:
            request = self._requests.get(request_id) if request_id else None
            return request.snapshot() if request else None

    def mark_assigned(self, request_id: str, agent_id: str) -> Request:
        with self._lock:
            request = self._require(request_id)
            request._transition_to(RequestStatus.ASSIGNED)
            request.assigned_agent_id = agent_id
            return request.snapshot()

    def mark_queued(self, request_id: str) -> Request:
        with self._lock:
            request = self._require(request_id)
            request._transition_to(RequestStatus.QUEUED)
            return request.snapshot()

    def mark_delivered(
        self, request_id: str, agent_id: str, timestamp: datetime | None = None
    ) -> Request:
        """Record the delivery of an assigned request.

        Delivering a request that is already delivered returns it unchanged,
        so a duplicate or late clock effect is harmless.

        Raises:
            NotFound: If ``request_id`` is unknown.
            InvalidTransition: If the request is not assigned to ``agent_id``.
        """
        with self._lock:
            request = self._require(request_id)
            if request.is_delivered:
                return request.snapshot()
            if request.status is not RequestStatus.ASSIGNED or request.assigned_agent_id != agent_id:
                msg = (
                    f"Request {request_id!r} is {request.status.value} "
                    f"(agent {request.assigned_agent_id!r}), cannot be delivered by {agent_id!r}"
                )
                raise InvalidTransition(msg)
            request._transition_to(RequestStatus.DELIVERED)
            request.delivered_at = timestamp or self._clock()
            request.delivered_by = agent_id
            return request.snapshot()

    def _require(self, request_id: str) -> Request:
        try:
            return self._requests[request_id]
        except KeyError:
            msg = f"No such request {request_id!r}"
            raise NotFound(msg) from None
