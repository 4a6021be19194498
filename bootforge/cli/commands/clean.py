"""``bootforge clean`` and ``bootforge reclaim``."""

from __future__ import annotations

from pathlib import Path

import typer

from bootforge.cli.commands._common import (
    CONFIG_OPTION,
    console,
    make_orchestrator,
    reporting_failures,
)


def clean_cmd(
    everything: bool = typer.Option(
        False, "--all", help="Also remove the bootloader checkout and build state."
    ),
    config: Path = CONFIG_OPTION,
) -> None:
    """Remove generated images.  Source inputs are never touched."""
    with reporting_failures():
        removed = make_orchestrator(config).clean(everything=everything)
    if not removed:
        console.print("[dim]Nothing to clean.[/dim]")
        return
    for path in removed:
        console.print(f"[green]removed[/green] {path}")


def reclaim_cmd(config: Path = CONFIG_OPTION) -> None:
    """Release loop devices and mounts left behind by a crashed build."""
    with reporting_failures():
        released = make_orchestrator(config).reclaim()
    if not released:
        console.print("[dim]No leaked resources.[/dim]")
        return
    for resource in released:
        console.print(f"[green]released[/green] {resource}")
