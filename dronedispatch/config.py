"""Default configuration for the dispatch simulation.

Module-level constants hold the values the simulation runs with unless a
``SimulationConfig`` overrides them. Angles and distances are expressed in
decimal degrees because agents step on a flat lat/lng plane.

Example:
    >>> from dronedispatch.config import SimulationConfig
    >>> config = SimulationConfig(fleet_size=2, seed=7)
    >>> config.tick_period
    1.0
"""

from dataclasses import dataclass

# Fleet Configuration
FLEET_SIZE = 4
FLEET_CENTER = (28.7041, 77.1025)  # New Delhi
FLEET_SPREAD = 0.05
INITIAL_BATTERY_RANGE = (80.0, 100.0)

# Battery Configuration
BATTERY_DRAIN_PER_TICK = 0.02
BATTERY_FLOOR = 5.0
BATTERY_MAX = 100.0
ELIGIBILITY_THRESHOLD = 20.0

# Movement Configuration
STEP_LENGTH = 0.0008
WANDER_SPREAD = 0.0002

# Map Trace Configuration
TRACE_SPREAD = 0.0005
TRACE_CAPACITY = 1000
MAP_UPDATE_LIMIT = 200
MAP_QUERY_LIMIT = 500

# Clock & Broadcast Configuration
TICK_PERIOD = 1.0
SUBSCRIBER_QUEUE_SIZE = 64


@dataclass(frozen=True)
class SimulationConfig:
    """Configuration for one simulation context."""

    fleet_size: int = FLEET_SIZE
    center: tuple[float, float] = FLEET_CENTER
    spread: float = FLEET_SPREAD
    battery_range: tuple[float, float] = INITIAL_BATTERY_RANGE

    battery_drain: float = BATTERY_DRAIN_PER_TICK
    battery_floor: float = BATTERY_FLOOR
    eligibility_threshold: float = ELIGIBILITY_THRESHOLD

    step_length: float = STEP_LENGTH
    wander_spread: float = WANDER_SPREAD

    trace_spread: float = TRACE_SPREAD
    trace_capacity: int = TRACE_CAPACITY
    map_update_limit: int = MAP_UPDATE_LIMIT

    tick_period: float = TICK_PERIOD
    subscriber_queue_size: int = SUBSCRIBER_QUEUE_SIZE
    seed: int | None = None
