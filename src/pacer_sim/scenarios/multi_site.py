"""Multi site scenario.

Two travel sites with different tolerances, polled side by side: a
listings site at 20 requests/minute with 2 in flight and a reviews site at
15 requests/minute with 1 in flight. CLI rate and concurrency are ignored;
the rates are scaled by ``--speedup`` so a run finishes in seconds.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from pacer_sim.scenarios import Scenario, ScenarioInfo, simulated_request

if TYPE_CHECKING:
    from pacer import SiteRegistry
    from pacer_sim.display import SimulationState
    from pacer_sim.runner import SimConfig

SITES = {
    "listings": (20, 2),
    "reviews": (15, 1),
}


class MultiSiteScenario(Scenario):

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="multi_site",
            description="Two sites with independent limits (20/min x2, 15/min x1)",
        )

    def setup(self, sites: SiteRegistry, config: SimConfig) -> None:
        for name, (rpm, concurrent) in SITES.items():
            sites.register(
                name,
                rate=f"{rpm * config.speedup}/min",
                concurrent=concurrent,
                max_retries=config.max_retries,
                retry_delay=config.retry_delay_ms,
            )

    def submit_workload(
        self, sites: SiteRegistry, config: SimConfig, state: SimulationState
    ) -> list[asyncio.Future]:
        handles = []
        names = list(SITES)
        for i in range(config.count):
            site = names[i % len(names)]
            item = f"item_{i:04d}"
            handles.append(sites.get(site).schedule(simulated_request(site, item, config, state)))
            state.submitted += 1
            state.add_event("queued", site, item)
        return handles
