"""Simulated delivery agents (drones) and their status lifecycle.

An agent is idle, assigned to a request, en route to a target, or returning
after a delivery. The target and the status move together: an agent has a
target exactly while it is ``ASSIGNED`` or ``ENROUTE``. Every method that
changes one of them changes the other in the same call, which keeps that
invariant without any caller bookkeeping.

State Transitions:
    Dispatch:  IDLE → ASSIGNED → ENROUTE → RETURNING → IDLE
    Operator:  any → RETURNING (recall), IDLE/ASSIGNED/RETURNING → ENROUTE (goto)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

import numpy as np

from dronedispatch.config import BATTERY_MAX
from dronedispatch.geo import GeoPoint
from dronedispatch.state import Lifecycle


class AgentStatus(Enum):
    """Operational status of an agent.

    States:
        IDLE: No target; wanders near its position and accepts dispatches.
        ASSIGNED: Dispatched to a request but has not moved yet.
        ENROUTE: Moving toward its target.
        RETURNING: Target cleared, either on arrival or by operator recall.
    """

    IDLE = "idle"
    ASSIGNED = "assigned"
    ENROUTE = "enroute"
    RETURNING = "returning"


AGENT_LIFECYCLE = Lifecycle(
    "agent",
    {
        AgentStatus.IDLE: {
            AgentStatus.IDLE,
            AgentStatus.ASSIGNED,
            AgentStatus.ENROUTE,
            AgentStatus.RETURNING,
        },
        AgentStatus.ASSIGNED: {AgentStatus.ENROUTE, AgentStatus.RETURNING},
        AgentStatus.ENROUTE: {AgentStatus.ENROUTE, AgentStatus.RETURNING},
        AgentStatus.RETURNING: {
            AgentStatus.IDLE,
            AgentStatus.ENROUTE,
            AgentStatus.RETURNING,
        },
    },
)

TARGETED_STATUSES = frozenset({AgentStatus.ASSIGNED, AgentStatus.ENROUTE})


@dataclass(frozen=True)
class Target:
    """Destination of an agent.

    Attributes:
        position (GeoPoint): Where the agent is heading.
        request_id (str | None): Request delivered on arrival, ``None`` for an
            operator goto.
    """

    position: GeoPoint
    request_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return {**self.position.as_dict(), "request_id": self.request_id}


@dataclass
class Agent:
    """Mutable state of one fleet agent.

    Agents are owned by the ``FleetRegistry``; everything outside the
    registry works on copies returned by ``snapshot()``.

    Attributes:
        id (str): Unique, immutable identifier such as ``"drone-1"``.
        position (GeoPoint): Current position.
        battery (float): Battery percentage in ``[floor, 100]``.
        status (AgentStatus): Current operational status.
        target (Target | None): Current destination, if any.
    """

    id: str
    position: GeoPoint
    battery: float = BATTERY_MAX
    status: AgentStatus = AgentStatus.IDLE
    target: Target | None = None

    def _transition_to(self, status: AgentStatus) -> None:
        self.status = AGENT_LIFECYCLE.check(self.status, status)

    def is_eligible(self, threshold: float) -> bool:
        """Whether a new request may be dispatched to this agent."""
        return (
            self.status is AgentStatus.IDLE
            and self.target is None
            and self.battery > threshold
        )

    def assign(self, target: Target) -> None:
        """Commit to a dispatched request."""
        self._transition_to(AgentStatus.ASSIGNED)
        self.target = target

    def go_to(self, position: GeoPoint) -> None:
        """Head for ``position`` without a linked request."""
        self._transition_to(AgentStatus.ENROUTE)
        self.target = Target(position)

    def recall(self) -> None:
        """Drop the current target and return."""
        self._transition_to(AgentStatus.RETURNING)
        self.target = None

    def drain(self, amount: float, floor: float) -> None:
        self.battery = min(BATTERY_MAX, max(floor, self.battery - amount))

    def advance(self, step: float) -> Target | None:
        """Move one step toward the target.

        Args:
            step (float): Step length in degrees.

        Returns:
            Target | None: The target that was reached on this step, or
            ``None`` while still travelling. On arrival the target is cleared
            and the agent is ``RETURNING``.
        """
        if self.target is None:
            return None
        self._transition_to(AgentStatus.ENROUTE)
        self.position, arrived = self.position.step_towards(self.target.position, step)
        if not arrived:
            return None
        reached = self.target
        self.recall()
        return reached

    def wander(self, rng: np.random.Generator, spread: float) -> None:
        """Patrol near the current position while untargeted."""
        self._transition_to(AgentStatus.IDLE)
        self.position = self.position.jittered(rng, spread)

    def snapshot(self) -> Agent:
        return replace(self)

    def as_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            **self.position.as_dict(),
            "battery": self.battery,
            "status": self.status.value,
            "target": self.target.as_dict() if self.target else None,
        }
