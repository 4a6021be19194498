"""Rich terminal renderer for build reports.

Color scheme
------------
- green     : PASSED
- cyan      : FRESH
- red       : FAILED
- yellow    : RUNNING
- dim       : PENDING, NOT_RUN
"""

from __future__ import annotations

from collections.abc import Sequence

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from bootforge.harness.bootcheck import BootCheckResult
from bootforge.models.stages import BuildReport, StageState

# ---------------------------------------------------------------------------
# State -> Rich style mapping
# ---------------------------------------------------------------------------

_STATE_STYLES: dict[StageState, str] = {
    StageState.PASSED: "bold green",
    StageState.FRESH: "cyan",
    StageState.FAILED: "bold red",
    StageState.RUNNING: "bold yellow",
    StageState.PENDING: "dim",
    StageState.NOT_RUN: "dim",
}

_STATE_ICONS: dict[StageState, str] = {
    StageState.PASSED: "[green]BUILT[/green]",
    StageState.FRESH: "[cyan]FRESH[/cyan]",
    StageState.FAILED: "[bold red]FAILED[/bold red]",
    StageState.RUNNING: "[yellow]RUNNING[/yellow]",
    StageState.PENDING: "[dim]PENDING[/dim]",
    StageState.NOT_RUN: "[dim]NOT RUN[/dim]",
}


class ReportRenderer:
    """Renders ``BuildReport`` as Rich terminal output.

    Parameters
    ----------
    console:
        Rich Console instance.  A new one is created if not provided.
    """

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def render_report(self, report: BuildReport) -> Panel:
        """Render a BuildReport as a Panel holding the stage table."""
        table = Table(show_header=True, header_style="bold cyan", expand=True)
        table.add_column("#", style="dim", width=3, justify="right")
        table.add_column("Stage", min_width=16)
        table.add_column("State", min_width=10, justify="center")
        table.add_column("Details", min_width=20)
        table.add_column("Time", justify="right", width=8)

        for i, outcome in enumerate(report.outcomes):
            name_style = _STATE_STYLES.get(outcome.state, "")
            elapsed = (
                f"{outcome.duration_seconds:.1f}s"
                if outcome.state == StageState.PASSED
                else "[dim]-[/dim]"
            )
            table.add_row(
                str(i),
                f"[{name_style}]{outcome.display_name}[/{name_style}]",
                _STATE_ICONS.get(outcome.state, outcome.state.value),
                Text(outcome.reason or "-", style="red" if outcome.state == StageState.FAILED else "dim"),
                elapsed,
            )

        status = (
            "[green]up to date[/green]" if report.succeeded else "[bold red]FAILED[/bold red]"
        )
        summary = (
            f"[bold]Target:[/bold] {report.target}  |  "
            f"[bold]Ran:[/bold] {len(report.executed)}/{len(report.outcomes)}  |  "
            f"[bold]Status:[/bold] {status}"
        )
        return Panel(
            Group(table, Text(""), Text.from_markup(summary)),
            title="[bold]Bootforge Build[/bold]",
            border_style="blue" if report.succeeded else "red",
            padding=(1, 2),
        )

    def print_report(self, report: BuildReport) -> None:
        self.console.print(self.render_report(report))

    def print_bootcheck(self, results: Sequence[BootCheckResult]) -> None:
        table = Table(title="Hybrid boot check")
        table.add_column("Firmware", style="cyan")
        table.add_column("Marker")
        table.add_column("Reached", justify="center")
        for result in results:
            reached = "[green]Yes[/green]" if result.reached else "[bold red]No[/bold red]"
            table.add_row(result.firmware.value.upper(), result.marker, reached)
        self.console.print(table)
