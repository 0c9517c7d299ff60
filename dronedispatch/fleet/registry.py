"""Fleet registry: the single owner of agent records.

The registry is created once with a fixed set of agents and never grows or
shrinks. All access goes through the registry lock, which the ``Simulation``
shares with the request ledger so a clock tick and a dispatch cannot
interleave.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from typing import TypeVar

import numpy as np

from dronedispatch.config import FLEET_CENTER, FLEET_SIZE, FLEET_SPREAD, INITIAL_BATTERY_RANGE
from dronedispatch.errors import NotFound
from dronedispatch.geo import GeoPoint

from .agent import Agent

R = TypeVar("R")


class FleetRegistry:
    """Thread-safe, fixed-size collection of agents in insertion order."""

    def __init__(self, agents: Iterable[Agent], lock: threading.RLock | None = None):
        """Initialize the registry.

        Args:
            agents: Agents to own. Ids must be unique.
            lock: Lock guarding every access. A private ``RLock`` is created
                when omitted.

        Raises:
            ValueError: If two agents share an id.
        """
        self._lock = lock or threading.RLock()
        self._agents: dict[str, Agent] = {}
        for agent in agents:
            if agent.id in self._agents:
                msg = f"Duplicate agent id {agent.id!r}"
                raise ValueError(msg)
            self._agents[agent.id] = agent

    @classmethod
    def seeded(
        cls,
        count: int = FLEET_SIZE,
        center: tuple[float, float] = FLEET_CENTER,
        spread: float = FLEET_SPREAD,
        battery_range: tuple[float, float] = INITIAL_BATTERY_RANGE,
        rng: np.random.Generator | None = None,
        lock: threading.RLock | None = None,
    ) -> FleetRegistry:
        """Create ``count`` idle agents scattered around ``center``.

        Agents are named ``drone-1`` through ``drone-<count>``; positions are
        uniform within ``spread / 2`` of the center on each axis and battery
        levels uniform within ``battery_range``.
        """
        rng = rng or np.random.default_rng()
        origin = GeoPoint(*center)
        low, high = battery_range
        agents = [
            Agent(
                id=f"drone-{i}",
                position=origin.jittered(rng, spread),
                battery=float(rng.uniform(low, high)),
            )
            for i in range(1, count + 1)
        ]
        return cls(agents, lock)

    @property
    def lock(self) -> threading.RLock:
        return self._lock

    def __len__(self) -> int:
        return len(self._agents)

    def ids(self) -> list[str]:
        with self._lock:
            return list(self._agents)

    def list(self) -> list[Agent]:
        """Snapshot copies of every agent in insertion order."""
        with self._lock:
            return [agent.snapshot() for agent in self._agents.values()]

    def get(self, agent_id: str) -> Agent:
        """Snapshot copy of one agent.

        Raises:
            NotFound: If ``agent_id`` is unknown.
        """
        with self._lock:
            return self._require(agent_id).snapshot()

    def eligible(self, threshold: float) -> list[Agent]:
        """Agents that may take a new request, in registry order."""
        with self._lock:
            return [a.snapshot() for a in self._agents.values() if a.is_eligible(threshold)]

    def mutate(self, agent_id: str, fn: Callable[[Agent], R]) -> R:
        """Apply ``fn`` to the live agent under exclusive access.

        Raises:
            NotFound: If ``agent_id`` is unknown.
        """
        with self._lock:
            return fn(self._require(agent_id))

    def _require(self, agent_id: str) -> Agent:
        try:
            return self._agents[agent_id]
        except KeyError:
            msg = f"No such agent {agent_id!r}"
            raise NotFound(msg) from None
