"""Simulation runner for pacer-sim.

Runs a scenario and keeps a SimulationState current for whichever display
is attached.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from pacer import SiteRegistry
from pacer_sim.scenarios import get_scenario

if TYPE_CHECKING:
    from pacer_sim.display import SimulationState


@dataclass
class SimConfig:
    """Configuration for a simulation run."""

    count: int = 50
    latency_ms: int = 100
    latency_jitter: float = 0.2  # ±20% variance
    error_rate: float = 0.0
    error_status: int = 503
    requests_per_minute: int = 600
    max_concurrent: int = 2
    max_retries: int = 3
    retry_delay_ms: float = 100
    speedup: int = 30
    duration: float | None = None
    scenario: str = "single_site"


class SimulationRunner:
    """Runs a scenario and mirrors scheduler stats into the state.

    Usage:
        config = SimConfig(count=100, latency_ms=50)
        state = SimulationState()
        runner = SimulationRunner(config, state)
        await runner.run()
    """

    def __init__(self, config: SimConfig, state: SimulationState):
        self.config = config
        self.state = state
        self.sites = SiteRegistry()
        self._running = False

    async def run(self) -> None:
        """Run the simulation to completion, the duration limit, or stop()."""
        self._running = True
        self.state.start_time = time.time()
        self.state.latency_ms = self.config.latency_ms
        self.state.latency_jitter = self.config.latency_jitter
        self.state.error_rate = self.config.error_rate
        self.state.error_status = self.config.error_status
        self.state.scenario_name = self.config.scenario

        scenario = get_scenario(self.config.scenario)
        scenario.setup(self.sites, self.config)
        handles = scenario.submit_workload(self.sites, self.config, self.state)

        await self._monitor(handles)
        await self.cleanup()

        # Mark failures as seen; the display reports them through stats
        for handle in handles:
            if handle.done() and not handle.cancelled():
                handle.exception()

    async def _monitor(self, handles: list[asyncio.Future]) -> None:
        while self._running:
            self.update_state()

            if all(h.done() for h in handles):
                break
            if self.config.duration and self._elapsed >= self.config.duration:
                break

            await asyncio.sleep(0.05)
        self.update_state()

    def update_state(self) -> None:
        self.state.elapsed = self._elapsed
        self.state.sites = self.sites.stats()

    @property
    def _elapsed(self) -> float:
        return time.time() - self.state.start_time

    def stop(self) -> None:
        """Request simulation stop."""
        self._running = False

    async def cleanup(self) -> None:
        """Drop waiting work and let running requests finish."""
        await self.sites.stop(drop_waiting=True)
        self.update_state()
        self._running = False
