"""
Example of observing the event stream, commanding drones and re-dispatching
a queued request.
"""

from dronedispatch import Simulation, SimulationConfig
from dronedispatch.broadcast import FLEET_UPDATE, NEW_REQUEST
from dronedispatch.fleet import Agent, GotoPosition, Return
from dronedispatch.geo import GeoPoint


def main():
    print("=" * 80)
    print("Drone Dispatch Simulator - Operator Example")
    print("=" * 80)

    sim = Simulation(
        SimulationConfig(seed=7),
        agents=[Agent(id="drone-1", position=GeoPoint(28.70, 77.10))],
    )
    requests = sim.subscribe(NEW_REQUEST)
    fleet = sim.subscribe(FLEET_UPDATE, replay=True)
    print(f"Initial fleet: {[a.id for a in fleet.get(timeout=1.0)['agents']]}")

    first = sim.submit_request((28.701, 77.101), ["meds"], name="Elder Home")
    second = sim.submit_request((28.702, 77.102), ["water"], name="School")
    for payload in requests.drain():
        request = payload["request"]
        print(f"  new-request {request.requester.name}: {request.status.value}")

    print("\nRecalling drone-1 and sending it somewhere else...")
    sim.command_agent("drone-1", Return())
    sim.tick()  # returning -> idle
    agent = sim.command_agent("drone-1", GotoPosition(GeoPoint(28.69, 77.09)))
    print(f"  drone-1 is {agent.status.value} toward {agent.target.position}")

    sim.command_agent("drone-1", Return())
    sim.tick()
    print("\nRe-dispatching the queued request...")
    assigned = sim.redispatch(second.id)
    print(f"  {second.requester.name} -> {assigned.id if assigned else 'still queued'}")
    print(f"  {first.requester.name} stays {sim.get_request(first.id).status.value}")

    requests.close()
    fleet.close()
    print("\n" + "=" * 80)
    print("Example completed!")
    print("=" * 80)


if __name__ == "__main__":
    main()
