"""Demo seeding: community requests followed by an emergency spike.

Mirrors a realistic relief scenario around the default fleet center. Three
community requests arrive one after another, then six households near the
same spot submit at once. With the default four-drone fleet the spike leaves
some requests queued.
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass

import numpy as np

from dronedispatch.ledger import Request

log = logging.getLogger(__name__)

SPIKE_CENTER = (28.706, 77.103)
SPIKE_SIZE = 6
SPIKE_SPREAD = 0.006


@dataclass(frozen=True)
class DemoRequest:
    name: str
    lat: float
    lng: float
    supplies: tuple[str, ...]
    phone: str


COMMUNITY_REQUESTS = (
    DemoRequest("Community Health Post", 28.7041, 77.1025, ("bandages", "water"), "+91123456"),
    DemoRequest("Elder Home", 28.71, 77.11, ("meds", "water"), "+91123457"),
    DemoRequest("School", 28.695, 77.09, ("food packs", "blankets"), "+91123458"),
)


def spike_requests(
    rng: np.random.Generator,
    center: tuple[float, float] = SPIKE_CENTER,
    size: int = SPIKE_SIZE,
    spread: float = SPIKE_SPREAD,
) -> list[DemoRequest]:
    """Households scattered within ``spread / 2`` of ``center``."""
    offsets = rng.uniform(-0.5, 0.5, size=(size, 2)) * spread
    return [
        DemoRequest(
            f"House {i}",
            center[0] + float(dlat),
            center[1] + float(dlng),
            ("water", "first-aid"),
            f"+91{900000000 + i}",
        )
        for i, (dlat, dlng) in enumerate(offsets, start=1)
    ]


def submit(simulation, demo: DemoRequest) -> Request:
    request = simulation.submit_request((demo.lat, demo.lng), demo.supplies, demo.name, demo.phone)
    log.info("Sent %s %s %s", request.id, request.status.value, request.assigned_agent_id or "")
    return request


def seed_demo_requests(
    simulation,
    rng: np.random.Generator | None = None,
    pause: float = 0.0,
) -> list[Request]:
    """Submit the community requests, then the concurrent spike.

    Args:
        simulation: ``Simulation`` receiving the requests.
        rng: Generator for the spike positions.
        pause: Seconds to wait between community requests.

    Returns:
        list[Request]: Every submitted request after dispatch, community
        requests first, then the spike in submission order.
    """
    rng = rng or np.random.default_rng()
    submitted = []
    for demo in COMMUNITY_REQUESTS:
        submitted.append(submit(simulation, demo))
        if pause:
            time.sleep(pause)

    log.info("Emergency spike: %d simultaneous requests", SPIKE_SIZE)
    with ThreadPoolExecutor(SPIKE_SIZE, thread_name_prefix="DemoSpike") as executor:
        futures = [executor.submit(submit, simulation, demo) for demo in spike_requests(rng)]
        submitted.extend(future.result() for future in futures)
    return submitted
