"""Helpers shared by the CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import typer
from rich.console import Console
from rich.panel import Panel

from bootforge.config import ForgeSettings
from bootforge.core.errors import BootforgeError, ExternalToolFailure, PrivilegeError
from bootforge.core.orchestrator import Orchestrator
from bootforge.models.config import load_pipeline_config
from bootforge.monitor.renderer import ReportRenderer

console = Console()

CONFIG_OPTION = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to bootforge.toml (default: discovered in the working directory).",
)


def make_orchestrator(config_path: Path | None) -> Orchestrator:
    return Orchestrator(load_pipeline_config(config_path), settings=ForgeSettings())


@contextmanager
def reporting_failures(orchestrator: Orchestrator | None = None) -> Iterator[None]:
    """Print the first failure and exit with its code.

    A failing external tool sets the exit code to its own; anything else
    exits 1.
    """
    try:
        yield
    except BootforgeError as exc:
        if orchestrator is not None and orchestrator.last_report is not None:
            ReportRenderer(console).print_report(orchestrator.last_report)
        if isinstance(exc, ExternalToolFailure):
            title = f"{exc.tool} failed"
        elif isinstance(exc, PrivilegeError):
            title = f"{exc.tool} needs elevated privileges"
        else:
            title = type(exc).__name__
        console.print(
            Panel(str(exc), title=f"[bold red]{title}[/bold red]", border_style="red")
        )
        raise typer.Exit(code=exc.exit_code) from exc
    except ValueError as exc:
        # Invalid configuration (pydantic) or an unusable image size.
        console.print(f"[bold red]Invalid configuration:[/bold red] {exc}")
        raise typer.Exit(code=1) from exc
