"""Tests for the pacer-sim runner, scenarios and CLI."""

import pytest

from pacer_sim.cli import build_parser, main
from pacer_sim.display import SimulationState, SimulatorDisplay
from pacer_sim.runner import SimConfig, SimulationRunner
from pacer_sim.scenarios import get_scenario, list_scenarios


class TestScenarios:

    def test_list_scenarios(self):
        names = [info.name for info in list_scenarios()]
        assert names == ["single_site", "multi_site"]

    def test_unknown_scenario(self):
        with pytest.raises(ValueError, match="Unknown scenario"):
            get_scenario("missing")


class TestRunner:
    """SimulationRunner drives a scenario to completion."""

    async def test_single_site_completes(self):
        config = SimConfig(count=8, latency_ms=5, requests_per_minute=12000, max_concurrent=3)
        state = SimulationState()
        await SimulationRunner(config, state).run()

        assert state.submitted == 8
        assert state.completed == 8
        assert state.failed == 0
        assert state.attempts == 8
        assert state.progress == 1.0
        assert state.sites["site"].capacity == 3

    async def test_failures_are_retried_then_reported(self):
        config = SimConfig(
            count=4,
            latency_ms=0,
            error_rate=1.0,
            error_status=500,
            requests_per_minute=12000,
            max_retries=1,
            retry_delay_ms=5,
        )
        state = SimulationState()
        await SimulationRunner(config, state).run()

        assert state.failed == 4
        assert state.completed == 0
        assert state.attempts == 8
        assert any(e.event_type == "attempt_failed" for e in state.events)

    async def test_multi_site(self):
        config = SimConfig(count=6, latency_ms=2, scenario="multi_site", speedup=600)
        state = SimulationState()
        await SimulationRunner(config, state).run()

        assert set(state.sites) == {"listings", "reviews"}
        assert state.sites["listings"].capacity == 2
        assert state.sites["reviews"].capacity == 1
        assert state.completed == 6

    async def test_duration_limit_drops_waiting(self):
        config = SimConfig(count=20, latency_ms=0, requests_per_minute=600, duration=0.3)
        state = SimulationState()
        await SimulationRunner(config, state).run()

        # 100ms spacing: only a handful start before the limit
        assert 0 < state.completed < 20
        assert state.failed == 20 - state.completed


class TestDisplay:

    def test_layout_renders(self):
        state = SimulationState(submitted=3)
        state.add_event("queued", "site", "item_0000")
        display = SimulatorDisplay(state)
        assert display._build_layout() is not None

    def test_event_log_trimmed(self):
        state = SimulationState(max_events=3)
        for i in range(5):
            state.add_event("queued", "site", f"item_{i}")
        assert len(state.events) == 3
        assert state.events[0].details == "item_4"


class TestCli:

    def test_list_scenarios(self, capsys):
        assert main(["--list-scenarios"]) == 0
        assert "single_site" in capsys.readouterr().out

    def test_run_no_tui(self, capsys):
        code = main(["--count", "3", "--latency", "1", "--rate", "6000", "--no-tui", "--seed", "1"])
        assert code == 0
        assert "Simulation Results" in capsys.readouterr().out

    def test_rejects_unknown_scenario(self):
        with pytest.raises(SystemExit):
            main(["--scenario", "missing"])

    def test_rejects_bad_error_rate(self):
        with pytest.raises(SystemExit):
            main(["--error-rate", "2"])

    def test_parser_defaults(self):
        args = build_parser().parse_args([])
        assert args.scenario == "single_site"
        assert args.rate == 600
        assert args.status == 503
