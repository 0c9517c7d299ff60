"""Status lifecycle management for agents and requests.

Exports:
    Lifecycle: Transition table with validation
    State: Type variable for status enumerations
    StateGraph: Type alias for transition graph definitions
"""

from .lifecycle import Lifecycle, State, StateGraph

__all__ = ["Lifecycle", "State", "StateGraph"]
