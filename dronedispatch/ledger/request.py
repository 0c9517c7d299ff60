"""Delivery requests and their status lifecycle."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Any

from dronedispatch.geo import GeoPoint
from dronedispatch.state import Lifecycle


class RequestStatus(Enum):
    """Progress of a delivery request.

    States:
        PENDING: Created, dispatch not attempted yet.
        ASSIGNED: Linked to an agent that is on its way.
        QUEUED: No eligible agent when dispatched; waits for re-dispatch.
        DELIVERED: Terminal, an agent reached the request position.
    """

    PENDING = "pending"
    ASSIGNED = "assigned"
    QUEUED = "queued"
    DELIVERED = "delivered"


REQUEST_LIFECYCLE = Lifecycle(
    "request",
    {
        RequestStatus.PENDING: {RequestStatus.ASSIGNED, RequestStatus.QUEUED},
        RequestStatus.QUEUED: {RequestStatus.QUEUED, RequestStatus.ASSIGNED},
        RequestStatus.ASSIGNED: {RequestStatus.DELIVERED},
    },
)


@dataclass(frozen=True)
class Requester:
    name: str = "Anonymous"
    phone: str = ""


@dataclass
class Request:
    """A supply-delivery request as recorded by the ledger.

    Attributes:
        id (str): Unique id generated on creation.
        requester (Requester): Opaque contact details of the requester.
        position (GeoPoint): Delivery destination.
        supplies (tuple[str, ...]): Requested items, unique, in submission order.
        created_at (datetime): Creation time.
        status (RequestStatus): Current status.
        assigned_agent_id (str | None): Agent dispatched to this request.
        delivered_at (datetime | None): Delivery time, set only once delivered.
        delivered_by (str | None): Delivering agent, set only once delivered.
    """

    id: str
    requester: Requester
    position: GeoPoint
    supplies: tuple[str, ...]
    created_at: datetime
    status: RequestStatus = RequestStatus.PENDING
    assigned_agent_id: str | None = None
    delivered_at: datetime | None = None
    delivered_by: str | None = None

    def _transition_to(self, status: RequestStatus) -> None:
        self.status = REQUEST_LIFECYCLE.check(self.status, status)

    @property
    def is_delivered(self) -> bool:
        return self.status is RequestStatus.DELIVERED

    def snapshot(self) -> Request:
        return replace(self)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.requester.name,
            "phone": self.requester.phone,
            **self.position.as_dict(),
            "supplies": list(self.supplies),
            "status": self.status.value,
            "assigned_to": self.assigned_agent_id,
            "created_at": self.created_at.isoformat(),
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else None,
            "delivered_by": self.delivered_by,
        }
