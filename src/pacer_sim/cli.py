#!/usr/bin/env python3
"""
pacer-sim: Push a synthetic workload through site schedulers.

Usage:
    pacer-sim --count 100 --latency 50
    pacer-sim --count 50 --error-rate 0.2 --status 429
    pacer-sim --scenario multi_site --count 40 --no-tui
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import logging
import random
import signal
import sys

from rich.console import Console

from pacer_sim.display import SimulationState, SimulatorDisplay, print_final_summary, print_simple_stats
from pacer_sim.runner import SimConfig, SimulationRunner
from pacer_sim.scenarios import SCENARIOS, list_scenarios


def configure_logging(verbose: bool = False) -> None:
    """Route pacer logs to stderr when verbose, silence them otherwise."""
    pacer_logger = logging.getLogger("pacer")
    if verbose:
        pacer_logger.setLevel(logging.DEBUG)
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
        pacer_logger.addHandler(handler)
    else:
        pacer_logger.setLevel(logging.CRITICAL)


async def run_with_display(config: SimConfig, use_tui: bool = True) -> SimulationState:
    """Run a simulation while rendering progress."""
    state = SimulationState()
    runner = SimulationRunner(config, state)

    display = SimulatorDisplay(state) if use_tui else None

    async def update_loop():
        while True:
            if display is not None:
                display.refresh()
                await asyncio.sleep(0.1)
            else:
                print_simple_stats(state)
                await asyncio.sleep(0.5)

    with display or contextlib.nullcontext():
        update_task = asyncio.create_task(update_loop())
        try:
            await runner.run()
        except asyncio.CancelledError:
            runner.stop()
            await runner.cleanup()
            raise
        finally:
            update_task.cancel()
            try:
                await update_task
            except asyncio.CancelledError:
                pass
            if display is not None:
                display.refresh()

    if not use_tui:
        print()
    print_final_summary(state)
    return state


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="pacer simulator - watch throttling and retries on a synthetic workload",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  pacer-sim --count 100 --latency 50
  pacer-sim --count 30 --rate 120 --concurrent 1
  pacer-sim --count 50 --error-rate 0.2 --status 429
  pacer-sim --scenario multi_site --count 40
  pacer-sim --list-scenarios
        """,
    )

    parser.add_argument("--scenario", type=str, default="single_site", help="Scenario to run (default: single_site)")
    parser.add_argument("--list-scenarios", action="store_true", help="List available scenarios and exit")
    parser.add_argument("--count", "-n", type=int, default=50, help="Number of requests to schedule (default: 50)")
    parser.add_argument("--latency", "-l", type=int, default=100, help="Base request latency in ms (default: 100)")
    parser.add_argument(
        "--jitter", "-j", type=float, default=0.2,
        help="Latency variance as fraction, e.g. 0.2 = ±20%% (default: 0.2)",
    )
    parser.add_argument(
        "--error-rate", "-e", type=float, default=0.0,
        help="Fraction of attempts that fail, 0.0-1.0 (default: 0.0)",
    )
    parser.add_argument(
        "--status", type=int, default=503,
        help="HTTP status carried by simulated failures (default: 503)",
    )
    parser.add_argument("--rate", "-r", type=int, default=600, help="Requests per minute (default: 600)")
    parser.add_argument("--concurrent", "-c", type=int, default=2, help="Max concurrent requests (default: 2)")
    parser.add_argument("--max-retries", type=int, default=3, help="Retries after the first failure (default: 3)")
    parser.add_argument("--retry-delay", type=float, default=100, help="Base backoff in ms (default: 100)")
    parser.add_argument(
        "--speedup", type=int, default=30,
        help="Rate multiplier for the multi_site scenario (default: 30)",
    )
    parser.add_argument(
        "--duration", "-d", type=float, default=None,
        help="Maximum duration in seconds (default: run until complete)",
    )
    parser.add_argument("--no-tui", action="store_true", help="Disable TUI, use simple text output")
    parser.add_argument("--verbose", "-v", action="store_true", help="Log scheduler decisions (implies --no-tui)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible runs")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.list_scenarios:
        console = Console()
        console.print("\nAvailable scenarios:\n")
        for info in list_scenarios():
            console.print(f"  [bold]{info.name:<15}[/bold] {info.description}")
        console.print()
        return 0

    if args.scenario not in SCENARIOS:
        parser.error(f"Unknown scenario: {args.scenario}. Available: {', '.join(SCENARIOS)}")
    if not 0.0 <= args.error_rate <= 1.0:
        parser.error("--error-rate must be between 0.0 and 1.0")
    if args.rate <= 0:
        parser.error("--rate must be positive")
    if args.concurrent <= 0:
        parser.error("--concurrent must be positive")

    configure_logging(verbose=args.verbose)

    if args.seed is not None:
        random.seed(args.seed)

    config = SimConfig(
        count=args.count,
        latency_ms=args.latency,
        latency_jitter=args.jitter,
        error_rate=args.error_rate,
        error_status=args.status,
        requests_per_minute=args.rate,
        max_concurrent=args.concurrent,
        max_retries=args.max_retries,
        retry_delay_ms=args.retry_delay,
        speedup=args.speedup,
        duration=args.duration,
        scenario=args.scenario,
    )
    use_tui = not (args.no_tui or args.verbose)

    async def run_main() -> bool:
        """Run until done or interrupted. Returns False when interrupted."""
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_event.set)

        main_task = asyncio.create_task(run_with_display(config, use_tui=use_tui))
        stop_task = asyncio.create_task(stop_event.wait())

        done, pending = await asyncio.wait([main_task, stop_task], return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if main_task in done:
            main_task.result()
            return True
        return False

    try:
        finished = asyncio.run(run_main())
    except KeyboardInterrupt:
        finished = False

    if not finished:
        print("\nInterrupted.")
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
