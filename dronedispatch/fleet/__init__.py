"""Fleet management: agents, operator commands and the fleet registry.

Exports:
    Agent: Mutable agent record with lifecycle-checked status changes
    AgentStatus: Agent status enumeration
    Target: Destination with optional linked request
    FleetRegistry: Fixed-size, lock-guarded owner of all agents
    Return, GotoPosition, Command: Operator commands
"""

from .agent import AGENT_LIFECYCLE, TARGETED_STATUSES, Agent, AgentStatus, Target
from .commands import Command, GotoPosition, Return
from .registry import FleetRegistry

__all__ = [
    "AGENT_LIFECYCLE",
    "TARGETED_STATUSES",
    "Agent",
    "AgentStatus",
    "Target",
    "Command",
    "GotoPosition",
    "Return",
    "FleetRegistry",
]
