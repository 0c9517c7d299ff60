"""Nearest-first dispatch of delivery requests to idle agents."""

from __future__ import annotations

import logging
import threading

from dronedispatch.broadcast import FLEET_UPDATE, NEW_REQUEST, Broadcaster
from dronedispatch.config import ELIGIBILITY_THRESHOLD
from dronedispatch.errors import InvalidTransition
from dronedispatch.fleet import Agent, FleetRegistry, Target
from dronedispatch.ledger import RequestLedger, RequestStatus

from .strategies import AssignmentStrategy, NearestAssignment

log = logging.getLogger(__name__)

DISPATCHABLE = frozenset({RequestStatus.PENDING, RequestStatus.QUEUED})


class Dispatcher:
    """Matches requests to eligible agents.

    An agent is eligible when it is idle, has no target and its battery is
    above ``threshold``. The scan, both record updates and the resulting
    events all happen under the simulation lock, so observers see events in
    the order the state changed.

    A request that finds no eligible agent is queued and stays queued until
    ``assign`` is called for it again. Nothing re-scans queued requests.
    """

    def __init__(
        self,
        fleet: FleetRegistry,
        ledger: RequestLedger,
        broadcaster: Broadcaster,
        lock: threading.RLock,
        threshold: float = ELIGIBILITY_THRESHOLD,
        strategy: AssignmentStrategy | None = None,
    ):
        self.fleet = fleet
        self.ledger = ledger
        self.broadcaster = broadcaster
        self.threshold = threshold
        self.strategy = strategy or NearestAssignment()
        self._lock = lock

    def assign(self, request_id: str) -> Agent | None:
        """Dispatch a pending or queued request.

        Args:
            request_id: Id of the request in the ledger.

        Returns:
            Agent | None: Snapshot of the assigned agent, or ``None`` when the
            request was queued.

        Raises:
            NotFound: If the request is unknown.
            InvalidTransition: If the request is already assigned or delivered.
        """
        with self._lock:
            request = self.ledger.get(request_id)
            if request.status not in DISPATCHABLE:
                msg = f"Request {request_id!r} is {request.status.value}, cannot be dispatched"
                raise InvalidTransition(msg)

            candidates = self.fleet.eligible(self.threshold)
            chosen = self.strategy.select(candidates, request.position)
            if chosen is None:
                request = self.ledger.mark_queued(request_id)
                agent = None
                log.info("Request %s queued, no eligible agent", request_id)
            else:
                target = Target(request.position, request.id)
                self.fleet.mutate(chosen.id, lambda a: a.assign(target))
                request = self.ledger.mark_assigned(request_id, chosen.id)
                agent = self.fleet.get(chosen.id)
                log.info(
                    "Request %s assigned to %s (distance %.5f)",
                    request_id,
                    chosen.id,
                    chosen.position.distance_to(request.position),
                )
            self.broadcaster.publish(NEW_REQUEST, {"request": request})
            self.broadcaster.publish(FLEET_UPDATE, {"agents": self.fleet.list()})
        return agent
