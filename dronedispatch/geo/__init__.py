"""Geographic primitives shared by dispatch and movement.

Components:
    GeoPoint: Latitude/longitude pair with planar distance, straight-line
              stepping and random jitter.

Typical Usage:
    >>> from dronedispatch.geo import GeoPoint
    >>> drone = GeoPoint(0.0, 0.0)
    >>> position, arrived = drone.step_towards(GeoPoint(0.0, 0.01), 0.0008)
    >>> arrived
    False
"""

from .geo_point import GeoPoint

__all__ = ["GeoPoint"]
