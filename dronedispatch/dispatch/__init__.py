"""Request dispatch: selection strategies and the dispatcher.

Exports:
    Dispatcher: Assigns requests to eligible agents
    AssignmentStrategy: Base class for selection policies
    NearestAssignment: Nearest eligible agent, ties to registry order
"""

from .dispatcher import DISPATCHABLE, Dispatcher
from .strategies import AssignmentStrategy, NearestAssignment

__all__ = ["DISPATCHABLE", "Dispatcher", "AssignmentStrategy", "NearestAssignment"]
