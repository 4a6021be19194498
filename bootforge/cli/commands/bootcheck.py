"""``bootforge bootcheck`` — verify the ISO boots under BIOS and UEFI."""

from __future__ import annotations

from pathlib import Path

import typer

from bootforge.cli.commands._common import (
    CONFIG_OPTION,
    console,
    make_orchestrator,
    reporting_failures,
)
from bootforge.harness.bootcheck import Firmware
from bootforge.monitor.renderer import ReportRenderer


def bootcheck_cmd(
    firmware: str = typer.Option(
        "both", "--firmware", "-f", help="bios, efi, or both."
    ),
    config: Path = CONFIG_OPTION,
) -> None:
    """Boot the ISO headless and look for the bootloader's serial marker."""
    if firmware not in ("bios", "efi", "both"):
        console.print(f"[bold red]Unknown firmware:[/bold red] {firmware}")
        raise typer.Exit(code=2)

    with reporting_failures():
        orchestrator = make_orchestrator(config)
    with reporting_failures(orchestrator):
        results = orchestrator.bootcheck(
            None if firmware == "both" else Firmware(firmware)
        )

    ReportRenderer(console).print_bootcheck(results)
    if not all(r.reached for r in results):
        raise typer.Exit(code=1)
