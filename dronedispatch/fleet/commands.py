"""Operator commands accepted by ``Simulation.command_agent``."""

from dataclasses import dataclass

from dronedispatch.geo import GeoPoint

from .agent import Agent


@dataclass(frozen=True)
class Return:
    """Clear the agent's target and set it returning."""

    def apply(self, agent: Agent) -> None:
        agent.recall()


@dataclass(frozen=True)
class GotoPosition:
    """Send the agent to ``position`` without linking a request."""

    position: GeoPoint

    def apply(self, agent: Agent) -> None:
        agent.go_to(self.position)


Command = Return | GotoPosition
