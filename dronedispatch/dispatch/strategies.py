"""
Selection strategies used by the dispatcher.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence

import numpy as np

from dronedispatch.fleet import Agent
from dronedispatch.geo import GeoPoint


class AssignmentStrategy(ABC):
    """Base class for agent selection strategies."""

    @abstractmethod
    def select(self, candidates: Sequence[Agent], destination: GeoPoint) -> Agent | None:
        """
        Pick the agent to send to a destination.

        Args:
            candidates: Eligible agents in registry order
            destination: Position of the request

        Returns:
            The chosen agent, or None when no candidate fits
        """

    @abstractmethod
    def get_name(self) -> str:
        """Return the name of the strategy."""


class NearestAssignment(AssignmentStrategy):
    """Picks the candidate closest to the destination (straight-line distance)."""

    def get_name(self) -> str:
        return "Nearest Agent Assignment"

    def distances(self, candidates: Sequence[Agent], destination: GeoPoint) -> np.ndarray:
        """Euclidean distance from each candidate to the destination."""
        coords = np.array([(a.position.lat, a.position.lng) for a in candidates], dtype=float)
        return np.hypot(coords[:, 0] - destination.lat, coords[:, 1] - destination.lng)

    def select(self, candidates: Sequence[Agent], destination: GeoPoint) -> Agent | None:
        if not candidates:
            return None
        # argmin returns the first minimum, so ties go to the earliest agent
        return candidates[int(np.argmin(self.distances(candidates, destination)))]
