"""Fixed-period simulation clock.

The clock advances every agent once per tick: battery drain, a trace sample,
one movement step and arrival handling. It runs on a single dedicated thread
for the lifetime of the simulation, and ``tick()`` can also be driven directly
(tests, scripted replays).

Fault Isolation:
    Each agent is processed in its own ``try`` block. A failure is logged with
    its traceback and counted in ``ClockMetrics.agent_failures``; the remaining
    agents are still processed and the loop keeps running.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

import numpy as np

from dronedispatch.broadcast import FLEET_UPDATE, MAP_UPDATE, Broadcaster
from dronedispatch.config import SimulationConfig
from dronedispatch.errors import InvalidTransition
from dronedispatch.fleet import Agent, FleetRegistry
from dronedispatch.ledger import RequestLedger, utcnow
from dronedispatch.trace import MapPoint, TraceBuffer

log = logging.getLogger(__name__)


@dataclass
class ClockMetrics:
    """Counters describing the clock's work so far."""

    ticks: int = 0
    deliveries: int = 0
    agent_failures: int = 0
    last_tick_seconds: float = 0.0


class SimulationClock:
    """Drives the fleet forward on a fixed period."""

    def __init__(
        self,
        fleet: FleetRegistry,
        ledger: RequestLedger,
        trace: TraceBuffer,
        broadcaster: Broadcaster,
        lock: threading.RLock,
        config: SimulationConfig | None = None,
        rng: np.random.Generator | None = None,
        now: Callable[[], datetime] = utcnow,
    ):
        self.fleet = fleet
        self.ledger = ledger
        self.trace = trace
        self.broadcaster = broadcaster
        self.config = config or SimulationConfig()
        self.metrics = ClockMetrics()

        self._lock = lock
        self._rng = rng or np.random.default_rng(self.config.seed)
        self._now = now

        self._thread: threading.Thread | None = None
        self._shutdown = threading.Event()
        self._paused = threading.Event()

    @property
    def period(self) -> float:
        return self.config.tick_period

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def paused(self) -> bool:
        return self._paused.is_set()

    def start(self) -> None:
        """Start ticking on a background thread."""
        if self.running:
            return
        self._shutdown.clear()
        self._thread = threading.Thread(target=self._loop, name="SimulationClock", daemon=True)
        self._thread.start()
        log.info("Clock started, period %.3fs", self.period)

    def stop(self, timeout: float | None = 5.0) -> None:
        """Stop the timer. A tick in progress finishes first."""
        if self._thread is None:
            return
        self._shutdown.set()
        self._thread.join(timeout)
        self._thread = None
        log.info("Clock stopped after %d ticks", self.metrics.ticks)

    def pause(self) -> None:
        self._paused.set()

    def resume(self) -> None:
        self._paused.clear()

    def _loop(self) -> None:
        next_tick = time.monotonic() + self.period
        while not self._shutdown.wait(max(0.0, next_tick - time.monotonic())):
            next_tick += self.period
            if self.paused:
                continue
            try:
                self.tick()
            except Exception:
                log.exception("Tick %d failed", self.metrics.ticks + 1)

    def tick(self) -> None:
        """Advance every agent one step and publish the resulting state."""
        started = time.perf_counter()
        now = self._now()
        with self._lock:
            for agent_id in self.fleet.ids():
                try:
                    self.fleet.mutate(agent_id, lambda agent: self._advance(agent, now))
                except Exception:
                    self.metrics.agent_failures += 1
                    log.exception("Failed to advance agent %s", agent_id)
            self.metrics.ticks += 1
            self.metrics.last_tick_seconds = time.perf_counter() - started
            self.broadcaster.publish(FLEET_UPDATE, {"agents": self.fleet.list()})
            self.broadcaster.publish(
                MAP_UPDATE, {"points": self.trace.recent(self.config.map_update_limit)}
            )

    def _advance(self, agent: Agent, now: datetime) -> None:
        config = self.config
        agent.drain(config.battery_drain, config.battery_floor)
        self.trace.append(MapPoint(agent.position.jittered(self._rng, config.trace_spread), now))

        if agent.target is None:
            agent.wander(self._rng, config.wander_spread)
            return

        reached = agent.advance(config.step_length)
        if reached is not None:
            log.debug("Agent %s reached %r", agent.id, reached.position)
            if reached.request_id is not None:
                self._deliver(reached.request_id, agent.id, now)

    def _deliver(self, request_id: str, agent_id: str, now: datetime) -> None:
        request = self.ledger.find(request_id)
        if request is None:
            log.warning("Agent %s arrived for unknown request %s", agent_id, request_id)
            return
        if request.is_delivered:
            log.debug("Request %s already delivered by %s", request_id, request.delivered_by)
            return
        try:
            self.ledger.mark_delivered(request_id, agent_id, now)
        except InvalidTransition as exc:
            log.warning("Ignoring delivery by %s: %s", agent_id, exc)
            return
        self.metrics.deliveries += 1
        log.info("Request %s delivered by %s", request_id, agent_id)
