from .clock import ClockMetrics, SimulationClock
from .simulation import Simulation

__all__ = ["Simulation", "SimulationClock", "ClockMetrics"]
