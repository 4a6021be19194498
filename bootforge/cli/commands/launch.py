"""``bootforge run|test|kvm`` — build, then boot the media in the emulator."""

from __future__ import annotations

from pathlib import Path

import typer

from bootforge.cli.commands._common import (
    CONFIG_OPTION,
    make_orchestrator,
    reporting_failures,
)
from bootforge.models.profile import RunProfile

DISK_OPTION = typer.Option(
    False, "--disk", "-d", help="Also attach the raw disk image."
)


def _launch(profile: RunProfile, config: Path | None) -> None:
    with reporting_failures():
        orchestrator = make_orchestrator(config)
    with reporting_failures(orchestrator):
        orchestrator.launch(profile)


def run_cmd(disk: bool = DISK_OPTION, config: Path = CONFIG_OPTION) -> None:
    """Boot under software emulation with serial on the terminal."""
    _launch(RunProfile.default(disk=disk), config)


def test_cmd(
    disk: bool = DISK_OPTION,
    gdb: bool = typer.Option(
        False, "--gdb", help="Pause at boot and wait for a debugger instead of tracing."
    ),
    config: Path = CONFIG_OPTION,
) -> None:
    """Boot with interrupt tracing, or paused for a remote debugger."""
    _launch(RunProfile.trace(disk=disk, gdb=gdb), config)


def kvm_cmd(
    disk: bool = DISK_OPTION,
    whpx: bool = typer.Option(
        False, "--whpx", help="Use Windows Hypervisor Platform instead of KVM."
    ),
    config: Path = CONFIG_OPTION,
) -> None:
    """Boot with hardware acceleration."""
    _launch(RunProfile.accelerated(disk=disk, whpx=whpx), config)
