"""
Basic example of dispatching requests and watching them get delivered.
"""

from dronedispatch import Simulation, SimulationConfig
from dronedispatch.analyzer import DeliveryAnalyzer
from dronedispatch.fleet import Agent
from dronedispatch.geo import GeoPoint


def main():
    print("=" * 80)
    print("Drone Dispatch Simulator - Basic Example")
    print("=" * 80)

    # Two drones close to each other, full battery
    agents = [
        Agent(id="drone-1", position=GeoPoint(0.0, 0.0)),
        Agent(id="drone-2", position=GeoPoint(1.0, 1.0)),
    ]
    sim = Simulation(SimulationConfig(seed=42), agents=agents)

    print("\nSubmitting request at (0, 0.01)...")
    request = sim.submit_request((0.0, 0.01), ["water"], name="Field Clinic")
    print(f"Request {request.id}: {request.status.value} -> {request.assigned_agent_id}")

    print("\nAdvancing the clock until the delivery completes...")
    ticks = 0
    while not sim.get_request(request.id).is_delivered:
        sim.tick()
        ticks += 1
    delivered = sim.get_request(request.id)
    print(f"Delivered by {delivered.delivered_by} after {ticks} ticks")

    for agent in sim.list_agents():
        print(f"  {agent.id}: {agent.status.value}, battery {agent.battery:.2f}%")

    print("\n" + "-" * 80)
    DeliveryAnalyzer.from_simulation(sim).print_summary()

    print("\n" + "=" * 80)
    print("Example completed!")
    print("=" * 80)


if __name__ == "__main__":
    main()
