"""Real-time drone dispatch simulation core.

DroneDispatch keeps a fixed fleet of simulated delivery drones, accepts
supply-delivery requests with geographic coordinates, sends each request to
the nearest eligible idle drone, and advances every drone on a fixed tick
while broadcasting state snapshots to observers.

Framework Components:
    Geographic Primitives (dronedispatch.geo):
        • GeoPoint: lat/lng point with planar distance and straight-line stepping

    Status Lifecycles (dronedispatch.state):
        • Lifecycle: Validated status transitions for agents and requests

    Fleet Management (dronedispatch.fleet):
        • Agent, AgentStatus, Target: Drone records and their lifecycle
        • FleetRegistry: Fixed-size, lock-guarded owner of the fleet
        • Return, GotoPosition: Operator commands

    Request Ledger (dronedispatch.ledger):
        • Request, RequestStatus, Requester: Delivery requests
        • RequestLedger: Lock-guarded, append-only request log

    Dispatch (dronedispatch.dispatch):
        • Dispatcher: Nearest-first assignment of requests to idle drones

    Simulation Engine (dronedispatch.simulator):
        • SimulationClock: Fixed-period tick on a dedicated thread
        • Simulation: Context object exposing the external interface

    Observation (dronedispatch.broadcast, dronedispatch.trace):
        • Broadcaster, Subscription: Non-blocking publish/subscribe fan-out
        • TraceBuffer, MapPoint: Bounded FIFO of scan samples

    Analysis (dronedispatch.analyzer):
        • DeliveryAnalyzer: pandas summaries and matplotlib maps

Usage Patterns:
    Embedding in a transport layer:
        >>> from dronedispatch import Simulation, SimulationConfig
        >>> sim = Simulation(SimulationConfig(seed=42))
        >>> updates = sim.subscribe("fleet-update", replay=True)
        >>> sim.start()
        >>> request = sim.submit_request({"lat": 28.71, "lng": 77.11}, ["meds", "water"])
        >>> sim.stop()

    Console run:
        $ python -m dronedispatch --duration 30 --demo
"""

from dronedispatch.config import SimulationConfig
from dronedispatch.errors import DispatchError, InvalidInput, InvalidTransition, NotFound
from dronedispatch.simulator import Simulation

__version__ = "0.1.0"

__all__ = [
    "Simulation",
    "SimulationConfig",
    "DispatchError",
    "InvalidInput",
    "InvalidTransition",
    "NotFound",
]
