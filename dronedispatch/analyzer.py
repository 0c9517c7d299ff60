"""
Analyzer for delivery outcomes and fleet state.
"""

import json
import math
from collections.abc import Sequence
from typing import Any, Optional

import matplotlib.pyplot as plt
import pandas as pd
from rich.console import Console
from rich.table import Table

from .fleet import Agent
from .ledger import Request, RequestStatus
from .trace import MapPoint

REQUEST_COLUMNS = [
    "id", "name", "status", "assigned_to", "delivered_by",
    "lat", "lng", "supplies", "created_at", "delivered_at",
]
AGENT_COLUMNS = ["id", "status", "battery", "lat", "lng", "target_request"]

STATUS_COLORS = {
    RequestStatus.PENDING.value: "orange",
    RequestStatus.ASSIGNED.value: "red",
    RequestStatus.QUEUED.value: "gray",
    RequestStatus.DELIVERED.value: "green",
}


class DeliveryAnalyzer:
    """Summarizes a snapshot of requests, agents and trace points."""

    def __init__(
        self,
        requests: Sequence[Request] = (),
        agents: Sequence[Agent] = (),
        points: Sequence[MapPoint] = (),
    ):
        self.requests = list(requests)
        self.agents = list(agents)
        self.points = list(points)

    @classmethod
    def from_simulation(cls, simulation) -> "DeliveryAnalyzer":
        """Capture the current state of a ``Simulation``."""
        state = simulation.snapshot()
        return cls(state["requests"], state["agents"], simulation.list_recent_map_points())

    def requests_frame(self) -> pd.DataFrame:
        """One row per request, with delivery time in seconds."""
        rows = [
            (
                r.id, r.requester.name, r.status.value, r.assigned_agent_id, r.delivered_by,
                r.position.lat, r.position.lng, len(r.supplies), r.created_at, r.delivered_at,
            )
            for r in self.requests
        ]
        df = pd.DataFrame.from_records(rows, columns=REQUEST_COLUMNS)
        df["created_at"] = pd.to_datetime(df["created_at"], utc=True)
        df["delivered_at"] = pd.to_datetime(df["delivered_at"], utc=True)
        df["delivery_seconds"] = (df["delivered_at"] - df["created_at"]).dt.total_seconds()
        return df

    def agents_frame(self) -> pd.DataFrame:
        rows = [
            (
                a.id, a.status.value, a.battery, a.position.lat, a.position.lng,
                a.target.request_id if a.target else None,
            )
            for a in self.agents
        ]
        return pd.DataFrame.from_records(rows, columns=AGENT_COLUMNS)

    def get_summary(self) -> dict[str, Any]:
        """
        Get a summary of delivery outcomes.

        Returns:
            Dictionary with request counts per status, delivery time
            statistics, deliveries per agent and fleet battery levels
        """
        requests = self.requests_frame()
        agents = self.agents_frame()
        counts = requests["status"].value_counts()
        delivered = requests[requests["status"] == RequestStatus.DELIVERED.value]

        return {
            "total_requests": len(requests),
            "by_status": {s.value: int(counts.get(s.value, 0)) for s in RequestStatus},
            "mean_delivery_seconds": _or_none(delivered["delivery_seconds"].mean()),
            "median_delivery_seconds": _or_none(delivered["delivery_seconds"].median()),
            "deliveries_per_agent": {
                str(agent): int(n) for agent, n in delivered["delivered_by"].value_counts().items()
            },
            "fleet_size": len(agents),
            "mean_battery": _or_none(agents["battery"].mean()),
            "min_battery": _or_none(agents["battery"].min()),
            "trace_points": len(self.points),
        }

    def print_summary(self, console: Optional[Console] = None):
        """Print a formatted summary table."""
        console = console or Console()
        summary = self.get_summary()

        table = Table(title="Delivery Summary")
        table.add_column("Metric")
        table.add_column("Value", justify="right")
        table.add_row("Requests", str(summary["total_requests"]))
        for status, count in summary["by_status"].items():
            table.add_row(f"  {status}", str(count))
        table.add_row("Mean delivery (s)", _fmt(summary["mean_delivery_seconds"]))
        table.add_row("Median delivery (s)", _fmt(summary["median_delivery_seconds"]))
        for agent, count in summary["deliveries_per_agent"].items():
            table.add_row(f"Delivered by {agent}", str(count))
        table.add_row("Mean battery (%)", _fmt(summary["mean_battery"]))
        table.add_row("Trace points", str(summary["trace_points"]))
        console.print(table)

    def export_to_json(self, filepath: str):
        """
        Export the summary and the request log to a JSON file.

        Args:
            filepath: Path to output JSON file
        """
        data = {
            "summary": self.get_summary(),
            "requests": [r.as_dict() for r in self.requests],
            "agents": [a.as_dict() for a in self.agents],
        }
        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)

    def visualize(self, save_path: Optional[str] = None):
        """
        Plot trace points, agents, targets and requests on the lat/lng plane.

        Args:
            save_path: Path to save the figure (if None, displays interactively)

        Returns:
            The matplotlib figure
        """
        fig, ax = plt.subplots(figsize=(8, 8))

        if self.points:
            ax.scatter(
                [p.position.lng for p in self.points],
                [p.position.lat for p in self.points],
                c="lightgray", s=4, label="Trace", alpha=0.5,
            )

        for status, color in STATUS_COLORS.items():
            matching = [r for r in self.requests if r.status.value == status]
            if matching:
                ax.scatter(
                    [r.position.lng for r in matching],
                    [r.position.lat for r in matching],
                    c=color, marker="o", s=60, label=f"Request ({status})", alpha=0.8,
                )

        if self.agents:
            ax.scatter(
                [a.position.lng for a in self.agents],
                [a.position.lat for a in self.agents],
                c="blue", marker="^", s=100, label="Agents", alpha=0.8,
            )
            for agent in self.agents:
                ax.annotate(agent.id, (agent.position.lng, agent.position.lat), fontsize=8)
                if agent.target is not None:
                    ax.plot(
                        [agent.position.lng, agent.target.position.lng],
                        [agent.position.lat, agent.target.position.lat],
                        "g--", alpha=0.4,
                    )

        ax.set_title("Fleet and Requests")
        ax.set_xlabel("Longitude")
        ax.set_ylabel("Latitude")
        if ax.has_data():
            ax.legend(loc="best")
        ax.grid(True, alpha=0.3)
        fig.tight_layout()

        if save_path:
            fig.savefig(save_path, dpi=150, bbox_inches="tight")
            plt.close(fig)
        else:
            plt.show()
        return fig


def _or_none(value) -> Optional[float]:
    if value is None or (isinstance(value, float) and math.isnan(value)):
        return None
    return float(value)


def _fmt(value: Optional[float]) -> str:
    return "-" if value is None else f"{value:.2f}"
