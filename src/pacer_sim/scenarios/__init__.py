"""Built-in scenarios for pacer-sim.

A scenario registers sites and submits the workload.
"""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable

import httpx

if TYPE_CHECKING:
    from pacer import SiteRegistry
    from pacer_sim.display import SimulationState
    from pacer_sim.runner import SimConfig


@dataclass
class ScenarioInfo:
    """Metadata about a scenario."""
    name: str
    description: str


class Scenario(ABC):
    """Base class for simulation scenarios."""

    @property
    @abstractmethod
    def info(self) -> ScenarioInfo:
        ...

    @abstractmethod
    def setup(self, sites: SiteRegistry, config: SimConfig) -> None:
        """Register the scenario's sites."""
        ...

    @abstractmethod
    def submit_workload(
        self, sites: SiteRegistry, config: SimConfig, state: SimulationState
    ) -> list[asyncio.Future]:
        """Schedule the workload and return the pending handles."""
        ...


def simulated_request(
    site: str, item: str, config: SimConfig, state: SimulationState
) -> Callable[[], Awaitable[dict]]:
    """
    Build a task that behaves like a page fetch.

    Each call sleeps for the configured latency (with jitter) and fails at
    ``config.error_rate`` with an ``httpx.HTTPStatusError`` carrying
    ``config.error_status``.
    """
    url = f"https://{site}.example/{item}"

    async def request() -> dict:
        state.attempts += 1
        state.add_event("started", site, item)

        base_latency = config.latency_ms / 1000.0
        if base_latency > 0:
            jitter = config.latency_jitter
            await asyncio.sleep(base_latency * random.uniform(1 - jitter, 1 + jitter))

        if random.random() < config.error_rate:
            req = httpx.Request("GET", url)
            resp = httpx.Response(config.error_status, request=req)
            state.add_event("attempt_failed", site, f"{item} {config.error_status}")
            raise httpx.HTTPStatusError(
                f"Simulated {config.error_status} for {url}", request=req, response=resp
            )

        state.add_event("completed", site, item)
        return {"url": url}

    return request


from pacer_sim.scenarios.single_site import SingleSiteScenario
from pacer_sim.scenarios.multi_site import MultiSiteScenario

SCENARIOS: dict[str, type[Scenario]] = {
    "single_site": SingleSiteScenario,
    "multi_site": MultiSiteScenario,
}


def get_scenario(name: str) -> Scenario:
    """Get a scenario instance by name."""
    if name not in SCENARIOS:
        available = ", ".join(SCENARIOS.keys())
        raise ValueError(f"Unknown scenario: {name}. Available: {available}")
    return SCENARIOS[name]()


def list_scenarios() -> list[ScenarioInfo]:
    return [cls().info for cls in SCENARIOS.values()]
