"""Run a dispatch simulation in the terminal.

Usage:
    python -m dronedispatch --duration 30 --demo --plot fleet.png
"""

import argparse
import logging
import queue
import time

import numpy as np
from rich.console import Console
from rich.live import Live
from rich.table import Table

from dronedispatch.analyzer import DeliveryAnalyzer
from dronedispatch.broadcast import FLEET_UPDATE
from dronedispatch.config import FLEET_SIZE, TICK_PERIOD, SimulationConfig
from dronedispatch.demo import seed_demo_requests
from dronedispatch.fleet import Agent, AgentStatus
from dronedispatch.log import configure_logging
from dronedispatch.simulator import Simulation

CONSOLE = Console()

STATUS_STYLES = {
    AgentStatus.IDLE: "green",
    AgentStatus.ASSIGNED: "yellow",
    AgentStatus.ENROUTE: "cyan",
    AgentStatus.RETURNING: "magenta",
}


def fleet_table(agents: list[Agent], tick: int) -> Table:
    table = Table(title=f"Fleet (tick {tick})")
    table.add_column("Agent")
    table.add_column("Status")
    table.add_column("Battery", justify="right")
    table.add_column("Lat", justify="right")
    table.add_column("Lng", justify="right")
    table.add_column("Request")
    for agent in agents:
        style = STATUS_STYLES[agent.status]
        table.add_row(
            agent.id,
            f"[{style}]{agent.status.value}[/{style}]",
            f"{agent.battery:.2f}%",
            f"{agent.position.lat:.5f}",
            f"{agent.position.lng:.5f}",
            (agent.target.request_id or "goto")[:8] if agent.target else "-",
        )
    return table


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="dronedispatch", description=__doc__.splitlines()[0])
    parser.add_argument("--agents", type=int, default=FLEET_SIZE, help="fleet size")
    parser.add_argument("--period", type=float, default=TICK_PERIOD, help="seconds per tick")
    parser.add_argument("--duration", type=float, default=30.0, help="seconds to run")
    parser.add_argument("--seed", type=int, default=None, help="random seed")
    parser.add_argument("--demo", action="store_true", help="seed demo requests")
    parser.add_argument("--plot", default=None, help="save a fleet map to this path")
    parser.add_argument("--export", default=None, help="save a JSON summary to this path")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    configure_logging(logging.DEBUG if args.verbose else logging.INFO, CONSOLE)

    config = SimulationConfig(fleet_size=args.agents, tick_period=args.period, seed=args.seed)
    with Simulation(config) as sim:
        updates = sim.subscribe(FLEET_UPDATE, replay=True)
        sim.start()
        if args.demo:
            seed_demo_requests(sim, np.random.default_rng(args.seed))

        deadline = time.monotonic() + args.duration
        with Live(fleet_table(sim.list_agents(), 0), console=CONSOLE, refresh_per_second=4) as live:
            while time.monotonic() < deadline:
                remaining = deadline - time.monotonic()
                try:
                    payload = updates.get(timeout=max(0.01, min(remaining, 1.0)))
                except queue.Empty:
                    continue
                live.update(fleet_table(payload["agents"], sim.metrics.ticks))
        updates.close()

    analyzer = DeliveryAnalyzer.from_simulation(sim)
    analyzer.print_summary(CONSOLE)
    if args.export:
        analyzer.export_to_json(args.export)
        CONSOLE.print(f"Summary saved to {args.export}")
    if args.plot:
        analyzer.visualize(args.plot)
        CONSOLE.print(f"Map saved to {args.plot}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
