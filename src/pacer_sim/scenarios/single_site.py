"""Single site scenario - the default workload.

Every request goes through one site scheduler built from the CLI limits.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from pacer_sim.scenarios import Scenario, ScenarioInfo, simulated_request

if TYPE_CHECKING:
    from pacer import SiteRegistry
    from pacer_sim.display import SimulationState
    from pacer_sim.runner import SimConfig

SITE = "site"


class SingleSiteScenario(Scenario):

    @property
    def info(self) -> ScenarioInfo:
        return ScenarioInfo(
            name="single_site",
            description="One site, independent requests (default)",
        )

    def setup(self, sites: SiteRegistry, config: SimConfig) -> None:
        sites.register(
            SITE,
            rate=f"{config.requests_per_minute}/min",
            concurrent=config.max_concurrent,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay_ms,
        )

    def submit_workload(
        self, sites: SiteRegistry, config: SimConfig, state: SimulationState
    ) -> list[asyncio.Future]:
        scheduler = sites.get(SITE)
        handles = []
        for i in range(config.count):
            item = f"item_{i:04d}"
            handles.append(scheduler.schedule(simulated_request(SITE, item, config, state)))
            state.submitted += 1
            state.add_event("queued", SITE, item)
        return handles
