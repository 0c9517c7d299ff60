"""Transition tables for agent and request statuses.

A ``Lifecycle`` declares, for every status of an enumeration, the statuses it
may move to. Records consult their lifecycle before changing status, so an
undeclared change surfaces as ``InvalidTransition`` instead of silently
corrupting the fleet or the ledger.
"""

from collections.abc import Iterable, Mapping
from enum import Enum
from typing import Generic, TypeVar

from dronedispatch.errors import InvalidTransition

State = TypeVar("State", bound=Enum)
"""Type variable for status enumerations."""

StateGraph = Mapping[State, Iterable[State]]
"""Mapping of each status to the statuses reachable from it."""

S = TypeVar("S", bound=Enum)


class Lifecycle(Generic[S]):
    """Validated status transitions for one enumeration.

    Attributes:
        name: Label used in error messages, e.g. ``"agent"``.
        _allowed: Frozen mapping of each status to its reachable statuses.
    """

    def __init__(self, name: str, graph: Mapping[S, Iterable[S]]):
        """Initialize the lifecycle.

        Args:
            name: Label used in error messages.
            graph: Mapping of each status to the statuses it may move to.
                Statuses missing from the mapping are terminal.
        """
        self.name = name
        self._allowed: dict[S, frozenset[S]] = {
            state: frozenset(targets) for state, targets in graph.items()
        }

    def allows(self, frm: S, to: S) -> bool:
        return to in self._allowed.get(frm, frozenset())

    def reachable(self, frm: S) -> frozenset[S]:
        return self._allowed.get(frm, frozenset())

    def is_terminal(self, state: S) -> bool:
        return not self._allowed.get(state)

    def check(self, frm: S, to: S) -> S:
        """Validate a transition and return the target status.

        Raises:
            InvalidTransition: If ``to`` is not reachable from ``frm``.
        """
        if not self.allows(frm, to):
            msg = f"Illegal {self.name} transition {frm.name} → {to.name}"
            raise InvalidTransition(msg)
        return to
