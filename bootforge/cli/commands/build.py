"""``bootforge build`` — bring the boot media up to date."""

from __future__ import annotations

from pathlib import Path

import typer

from bootforge.cli.commands._common import (
    CONFIG_OPTION,
    console,
    make_orchestrator,
    reporting_failures,
)
from bootforge.monitor.renderer import ReportRenderer


def build_cmd(
    target: str = typer.Option(
        "iso",
        "--target",
        "-t",
        help="What to build: iso, disk, or all.",
    ),
    config: Path = CONFIG_OPTION,
) -> None:
    """Build the requested target and everything it depends on.

    Stages whose outputs are already up to date are skipped.
    """
    with reporting_failures():
        orchestrator = make_orchestrator(config)
    with reporting_failures(orchestrator):
        report = orchestrator.build(target)
    ReportRenderer(console).print_report(report)
