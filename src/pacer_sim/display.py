"""Rich-based display for pacer-sim.

This module only renders a SimulationState; it knows nothing about how
the simulation runs.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from rich.console import Console
from rich.layout import Layout
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from pacer import SchedulerStats


@dataclass
class EventRecord:
    """A recent event for display."""

    timestamp: datetime
    event_type: str
    site: str
    details: str = ""


@dataclass
class SimulationState:
    """Current state of the simulation for display.

    The runner updates this; the display renders it.
    """

    submitted: int = 0
    attempts: int = 0

    start_time: float = 0.0
    elapsed: float = 0.0

    # Latest stats per site
    sites: dict[str, SchedulerStats] = field(default_factory=dict)

    # Recent events (most recent first)
    events: list[EventRecord] = field(default_factory=list)
    max_events: int = 10

    # Config display
    latency_ms: int = 0
    latency_jitter: float = 0.2
    error_rate: float = 0.0
    error_status: int | None = None
    scenario_name: str = "single_site"

    @property
    def queued(self) -> int:
        return sum(s.queued + s.retrying for s in self.sites.values())

    @property
    def running(self) -> int:
        return sum(s.running for s in self.sites.values())

    @property
    def completed(self) -> int:
        return sum(s.succeeded for s in self.sites.values())

    @property
    def failed(self) -> int:
        return sum(s.failed for s in self.sites.values())

    @property
    def throughput(self) -> float:
        """Jobs completed per second."""
        if self.elapsed > 0:
            return self.completed / self.elapsed
        return 0.0

    @property
    def progress(self) -> float:
        """Fraction finished (0.0 to 1.0)."""
        if self.submitted > 0:
            return (self.completed + self.failed) / self.submitted
        return 0.0

    def add_event(self, event_type: str, site: str, details: str = "") -> None:
        self.events.insert(0, EventRecord(
            timestamp=datetime.now(),
            event_type=event_type,
            site=site,
            details=details,
        ))
        if len(self.events) > self.max_events:
            self.events = self.events[:self.max_events]


class SimulatorDisplay:
    """Live TUI with queue, site and event panels."""

    def __init__(self, state: SimulationState, console: Console | None = None):
        self.state = state
        self.console = console or Console()
        self._live: Live | None = None

    def __enter__(self) -> SimulatorDisplay:
        self._live = Live(
            self._build_layout(),
            console=self.console,
            refresh_per_second=10,
            screen=False,
        )
        self._live.__enter__()
        return self

    def __exit__(self, *args) -> None:
        if self._live:
            self._live.__exit__(*args)
            self._live = None

    def refresh(self) -> None:
        if self._live:
            self._live.update(self._build_layout())

    def _build_layout(self) -> Panel:
        s = self.state

        layout = Layout()
        layout.split_column(
            Layout(name="queue", size=4),
            Layout(name="sites", size=3 + len(s.sites)),
            Layout(name="events", size=7),
            Layout(name="config", size=3),
        )
        layout["queue"].update(self._build_queue_section())
        layout["sites"].update(self._build_sites_section())
        layout["events"].update(self._build_events_section())
        layout["config"].update(self._build_config_section())

        return Panel(
            layout,
            title=f"[bold cyan]pacer-sim[/bold cyan] [dim]{s.scenario_name}[/dim]",
            border_style="cyan",
        )

    def _build_queue_section(self) -> Panel:
        s = self.state

        stats = Table.grid(expand=True, padding=(0, 2))
        for _ in range(4):
            stats.add_column(justify="left")
        stats.add_row(
            f"[dim]Waiting:[/dim] [bold]{s.queued:,}[/bold]",
            f"[dim]Running:[/dim] [bold yellow]{s.running}[/bold yellow]",
            f"[dim]Completed:[/dim] [bold green]{s.completed:,}[/bold green]",
            f"[dim]Failed:[/dim] [bold red]{s.failed}[/bold red]",
        )

        stats2 = Table.grid(expand=True, padding=(0, 2))
        for _ in range(3):
            stats2.add_column(justify="left")
        stats2.add_row(
            f"[dim]Attempts:[/dim] [bold]{s.attempts:,}[/bold]",
            f"[dim]Progress:[/dim] [bold]{s.progress * 100:.0f}%[/bold]",
            f"[dim]Throughput:[/dim] [bold]{s.throughput:.1f}/s[/bold]",
        )

        content = Table.grid(expand=True)
        content.add_row(stats)
        content.add_row(stats2)
        return Panel(content, title="[bold]Queue[/bold]", border_style="blue")

    def _build_sites_section(self) -> Panel:
        s = self.state

        table = Table(box=None, expand=True, padding=(0, 1), show_header=False)
        table.add_column("Site", width=14)
        table.add_column("Concurrent", width=22)
        table.add_column("Reservoir", width=12, justify="right")
        table.add_column("Processed", width=12, justify="right")
        table.add_column("Retrying", width=10, justify="right")

        for name, stats in s.sites.items():
            bar = self._progress_bar(stats.running / stats.capacity, 8)
            concurrent = f"{bar} {stats.running}/{stats.capacity}"
            reservoir = "[dim]∞[/dim]" if stats.reservoir is None else str(stats.reservoir)

            processed = f"[green]{stats.succeeded}[/green]"
            if stats.failed > 0:
                processed += f"/[red]{stats.failed}[/red]"

            table.add_row(f"[bold]{name}[/bold]", concurrent, reservoir, processed, str(stats.retrying))

        if not s.sites:
            table.add_row("[dim]No sites configured[/dim]", "", "", "", "")

        return Panel(table, title="[bold]Sites[/bold]", border_style="blue")

    def _build_events_section(self) -> Panel:
        s = self.state

        table = Table(box=None, expand=True, padding=(0, 1), show_header=False)
        table.add_column("Time", width=10, style="dim")
        table.add_column("Event", width=14)
        table.add_column("Site", width=12)
        table.add_column("Details")

        event_styles = {
            "completed": "green",
            "failed": "red",
            "started": "yellow",
            "attempt_failed": "magenta",
            "queued": "dim",
        }
        for event in s.events[:5]:
            style = event_styles.get(event.event_type, "white")
            table.add_row(
                event.timestamp.strftime("%H:%M:%S"),
                f"[{style}]{event.event_type}[/{style}]",
                event.site,
                event.details[:40],
            )

        if not s.events:
            table.add_row("[dim]No events yet[/dim]", "", "", "")

        return Panel(table, title="[bold]Recent Events[/bold]", border_style="blue")

    def _build_config_section(self) -> Panel:
        s = self.state

        text = Text()
        text.append("Latency: ", style="dim")
        text.append(f"{s.latency_ms}ms", style="bold")
        if s.latency_jitter > 0:
            text.append(f" ±{s.latency_jitter * 100:.0f}%", style="dim")
        text.append("  Error: ", style="dim")
        text.append(f"{s.error_rate * 100:.0f}%", style="bold red" if s.error_rate > 0 else "bold")
        if s.error_status is not None:
            text.append(f" ({s.error_status})", style="dim")
        text.append("  Submitted: ", style="dim")
        text.append(f"{s.submitted:,}", style="bold")
        text.append("    Ctrl+C to stop", style="dim")

        return Panel(text, title="[bold]Config[/bold]", border_style="dim")

    @staticmethod
    def _progress_bar(pct: float, width: int = 10) -> str:
        pct = min(1.0, max(0.0, pct))
        filled = int(pct * width)
        empty = width - filled

        if pct >= 0.9:
            color = "red"
        elif pct >= 0.7:
            color = "yellow"
        else:
            color = "green"

        return f"[{color}]{'█' * filled}{'░' * empty}[/{color}]"


def print_simple_stats(state: SimulationState) -> None:
    """One-line progress for --no-tui."""
    s = state
    done = s.completed + s.failed
    print(
        f"\r[{done}/{s.submitted}] "
        f"Q:{s.queued} R:{s.running} ✓:{s.completed} ✗:{s.failed} "
        f"({s.progress * 100:.0f}%) {s.throughput:.1f}/s",
        end="",
        flush=True,
    )


def print_final_summary(state: SimulationState, console: Console | None = None) -> None:
    console = console or Console()
    console.print()

    table = Table(title="Simulation Results", show_header=False, border_style="green")
    table.add_column("Metric", style="dim")
    table.add_column("Value", style="bold")

    table.add_row("Submitted", str(state.submitted))
    table.add_row("Attempts", str(state.attempts))
    table.add_row("Completed", f"[green]{state.completed}[/green]")
    table.add_row("Failed", f"[red]{state.failed}[/red]" if state.failed else "0")
    table.add_row("Duration", f"{state.elapsed:.2f}s")
    table.add_row("Throughput", f"{state.throughput:.2f}/s")

    console.print(table)
