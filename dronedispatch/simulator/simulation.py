"""Simulation context: the narrow interface the transport layer calls into.

A ``Simulation`` owns one fleet registry, one request ledger, one trace buffer
and one broadcaster, and wires the dispatcher and the clock to them. There is
no module-level state; every component receives its collaborators from here.

Concurrency:
    One ``RLock`` is shared by the registry, the ledger and the trace buffer.
    A clock tick and a dispatch each hold it for their whole step, so at any
    time either one simulation step or one dispatch is mutating the state.
    Events are published before the lock is released, so every subscriber
    sees them in the order the state changed.

Example:
    >>> from dronedispatch import Simulation, SimulationConfig
    >>> with Simulation(SimulationConfig(seed=1)) as sim:
    ...     request = sim.submit_request((28.71, 77.11), ["water"], name="Elder Home")
    ...     request.status
    <RequestStatus.ASSIGNED: 'assigned'>
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import datetime
from typing import Any

import numpy as np

from dronedispatch.broadcast import FLEET_UPDATE, MAP_UPDATE, NEW_REQUEST, Broadcaster, Subscription
from dronedispatch.config import MAP_QUERY_LIMIT, SimulationConfig
from dronedispatch.dispatch import AssignmentStrategy, Dispatcher
from dronedispatch.errors import InvalidInput
from dronedispatch.fleet import Agent, Command, FleetRegistry, GotoPosition, Return
from dronedispatch.geo import GeoPoint
from dronedispatch.ledger import Request, Requester, RequestLedger, utcnow
from dronedispatch.trace import MapPoint, TraceBuffer

from .clock import ClockMetrics, SimulationClock

log = logging.getLogger(__name__)


class Simulation:
    """Dispatch simulation with a fixed fleet, a request ledger and a clock."""

    def __init__(
        self,
        config: SimulationConfig | None = None,
        agents: Iterable[Agent] | None = None,
        strategy: AssignmentStrategy | None = None,
        rng: np.random.Generator | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        """Initialize the simulation.

        Args:
            config: Simulation parameters. Defaults to ``SimulationConfig()``.
            agents: Explicit fleet. When omitted ``config.fleet_size`` agents
                are seeded around ``config.center``.
            strategy: Agent selection policy. Defaults to nearest-first.
            rng: Random generator for seeding, jitter and trace sampling.
                Defaults to one seeded with ``config.seed``.
            now: Wall clock used for request and trace timestamps.
        """
        self.config = config or SimulationConfig()
        self.lock = threading.RLock()
        self._rng = rng or np.random.default_rng(self.config.seed)

        if agents is None:
            self.fleet = FleetRegistry.seeded(
                self.config.fleet_size,
                self.config.center,
                self.config.spread,
                self.config.battery_range,
                rng=self._rng,
                lock=self.lock,
            )
        else:
            self.fleet = FleetRegistry(agents, lock=self.lock)

        self.ledger = RequestLedger(lock=self.lock, clock=now)
        self.trace = TraceBuffer(self.config.trace_capacity, lock=self.lock)
        self.broadcaster = Broadcaster(self.config.subscriber_queue_size)
        self.dispatcher = Dispatcher(
            self.fleet,
            self.ledger,
            self.broadcaster,
            self.lock,
            threshold=self.config.eligibility_threshold,
            strategy=strategy,
        )
        self.clock = SimulationClock(
            self.fleet,
            self.ledger,
            self.trace,
            self.broadcaster,
            self.lock,
            config=self.config,
            rng=self._rng,
            now=now,
        )
        log.info("Simulation ready with %d agents", len(self.fleet))

    # Lifecycle

    def start(self) -> None:
        self.clock.start()

    def stop(self) -> None:
        self.clock.stop()

    def pause(self) -> None:
        """Pause the timer. It skips ticks until ``resume``."""
        self.clock.pause()
        log.info("Simulation paused")

    def resume(self) -> None:
        """Resume the simulation."""
        self.clock.resume()
        log.info("Simulation resumed")

    def tick(self) -> None:
        self.clock.tick()

    @property
    def metrics(self) -> ClockMetrics:
        return self.clock.metrics

    def __enter__(self) -> Simulation:
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    # Requests

    def submit_request(
        self,
        position: object,
        supplies: Iterable[str] = (),
        name: str | None = None,
        phone: str | None = None,
    ) -> Request:
        """Record a delivery request and dispatch it immediately.

        Args:
            position: Destination as a ``GeoPoint``, ``(lat, lng)`` pair or
                ``{"lat": .., "lng": ..}`` mapping.
            supplies: Requested items.
            name: Requester name, ``"Anonymous"`` when empty.
            phone: Requester phone, ``""`` when empty.

        Returns:
            Request: The request after dispatch, ``ASSIGNED`` or ``QUEUED``.

        Raises:
            InvalidInput: If the position is missing or not finite. No
                request is created.
        """
        requester = Requester(str(name) if name else "Anonymous", str(phone) if phone else "")
        request = self.ledger.create(requester, position, supplies)
        self.dispatcher.assign(request.id)
        return self.ledger.get(request.id)

    def redispatch(self, request_id: str) -> Agent | None:
        """Try again to assign a queued request.

        Queued requests are never retried on their own; this is the explicit
        trigger.
        """
        return self.dispatcher.assign(request_id)

    def list_requests(self) -> list[Request]:
        return self.ledger.list()

    def get_request(self, request_id: str) -> Request:
        return self.ledger.get(request_id)

    # Fleet

    def list_agents(self) -> list[Agent]:
        return self.fleet.list()

    def get_agent(self, agent_id: str) -> Agent:
        return self.fleet.get(agent_id)

    def command_agent(self, agent_id: str, command: Command) -> Agent:
        """Apply an operator command to one agent.

        Raises:
            NotFound: If ``agent_id`` is unknown.
            InvalidInput: If the command or its position is unusable.
        """
        if isinstance(command, GotoPosition):
            command = GotoPosition(GeoPoint.coerce(command.position))
        elif not isinstance(command, Return):
            msg = f"Unknown command {command!r}"
            raise InvalidInput(msg)

        with self.lock:
            self.fleet.mutate(agent_id, command.apply)
            agent = self.fleet.get(agent_id)
            log.info("Agent %s commanded: %r", agent_id, command)
            self.broadcaster.publish(FLEET_UPDATE, {"agents": self.fleet.list()})
        return agent

    # Map

    def list_recent_map_points(self, limit: int = MAP_QUERY_LIMIT) -> list[MapPoint]:
        return self.trace.recent(limit)

    # Observers

    def snapshot(self) -> dict[str, Any]:
        """Current full state, for replay to a newly connected observer."""
        with self.lock:
            return {
                "agents": self.fleet.list(),
                "points": self.trace.recent(self.config.map_update_limit),
                "requests": self.ledger.list(),
            }

    def subscribe(self, topic: str, replay: bool = False, maxsize: int | None = None) -> Subscription:
        """Subscribe to ``fleet-update``, ``map-update`` or ``new-request``.

        With ``replay`` the subscription first receives the current state for
        its topic: the fleet, the recent trace, or every recorded request. The
        queue is enlarged by the size of the replay, so the whole replay is
        kept and ``maxsize`` live events still fit behind it.

        Raises:
            InvalidInput: If ``topic`` is unknown.
        """
        with self.lock:
            payloads = self._replay_payloads(topic) if replay else []
            size = (maxsize or self.broadcaster.queue_size) + len(payloads)
            subscription = self.broadcaster.subscribe(topic, size)
            for payload in payloads:
                subscription.offer(payload)
        return subscription

    def _replay_payloads(self, topic: str) -> list[dict[str, Any]]:
        if topic == FLEET_UPDATE:
            return [{"agents": self.fleet.list()}]
        if topic == MAP_UPDATE:
            return [{"points": self.trace.recent(self.config.map_update_limit)}]
        if topic == NEW_REQUEST:
            return [{"request": request} for request in self.ledger.list()]
        return []
