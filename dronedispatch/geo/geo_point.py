"""Planar latitude/longitude points and straight-line stepping.

Dispatch treats coordinates as points on a flat plane measured in decimal
degrees. Distances are Euclidean in that plane rather than geodesic, which is
accurate enough for the short hops of a city-scale fleet and keeps
nearest-agent comparisons cheap.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from numbers import Real

import numpy as np

from dronedispatch.errors import InvalidInput


@dataclass(frozen=True)
class GeoPoint:
    """Geographic point on the dispatch plane.

    Attributes:
        lat (float): Latitude in decimal degrees.
        lng (float): Longitude in decimal degrees.

    Example:
        >>> depot = GeoPoint(28.7041, 77.1025)
        >>> clinic = GeoPoint(28.7100, 77.1100)
        >>> round(depot.distance_to(clinic), 5)
        0.00954
    """

    lat: float
    lng: float

    @classmethod
    def from_values(cls, lat: object, lng: object) -> GeoPoint:
        """Build a point from raw, untrusted coordinate values.

        Zero is a valid coordinate. Booleans, strings and other non-numeric
        values are rejected even though some of them convert to float.

        Args:
            lat (object): Latitude as supplied by a caller.
            lng (object): Longitude as supplied by a caller.

        Returns:
            GeoPoint: Point holding both values as floats.

        Raises:
            InvalidInput: If either value is missing, not a real number, or
                not finite.
        """
        for name, value in (("lat", lat), ("lng", lng)):
            if value is None:
                msg = f"{name} is required"
                raise InvalidInput(msg)
            if isinstance(value, bool) or not isinstance(value, Real):
                msg = f"{name} must be a number, got {type(value).__name__}"
                raise InvalidInput(msg)
            if not math.isfinite(value):
                msg = f"{name} must be finite, got {value!r}"
                raise InvalidInput(msg)
        return cls(float(lat), float(lng))

    @classmethod
    def coerce(cls, value: object) -> GeoPoint:
        """Build a point from a ``GeoPoint``, a ``(lat, lng)`` pair or a mapping.

        Mappings use the ``lat``/``lng`` keys of request payloads.

        Raises:
            InvalidInput: If ``value`` is missing or holds unusable coordinates.
        """
        if value is None:
            msg = "position is required"
            raise InvalidInput(msg)
        if isinstance(value, GeoPoint):
            return cls.from_values(value.lat, value.lng)
        if isinstance(value, Mapping):
            return cls.from_values(value.get("lat"), value.get("lng"))
        if isinstance(value, Sequence) and not isinstance(value, str) and len(value) == 2:
            return cls.from_values(*value)
        msg = f"position must be a point, pair or mapping, got {type(value).__name__}"
        raise InvalidInput(msg)

    def distance_to(self, other: GeoPoint) -> float:
        """Euclidean distance to ``other`` in degrees."""
        return math.hypot(other.lat - self.lat, other.lng - self.lng)

    def step_towards(self, target: GeoPoint, step: float) -> tuple[GeoPoint, bool]:
        """Advance one fixed-length step along the straight line to ``target``.

        When the remaining distance is shorter than one step the result is
        ``target`` itself, so an agent never overshoots its destination.

        Args:
            target (GeoPoint): Destination of the movement.
            step (float): Step length in degrees.

        Returns:
            tuple[GeoPoint, bool]: The new position and whether it is the target.
        """
        dist = self.distance_to(target)
        if dist < step:
            return target, True
        dlat = (target.lat - self.lat) / dist
        dlng = (target.lng - self.lng) / dist
        return GeoPoint(self.lat + dlat * step, self.lng + dlng * step), False

    def jittered(self, rng: np.random.Generator, spread: float) -> GeoPoint:
        """Point offset uniformly by up to ``spread / 2`` on each axis."""
        dlat, dlng = rng.uniform(-0.5, 0.5, size=2) * spread
        return GeoPoint(self.lat + float(dlat), self.lng + float(dlng))

    def as_dict(self) -> dict[str, float]:
        return {"lat": self.lat, "lng": self.lng}

    def __repr__(self) -> str:
        return f"GeoPoint({self.lat:.6f}, {self.lng:.6f})"
