"""Main Typer application — imports and registers all CLI commands.

Entry point: ``bootforge`` (configured via pyproject.toml console_scripts).
"""

from __future__ import annotations

import logging

import typer

from bootforge.cli.commands.bootcheck import bootcheck_cmd
from bootforge.cli.commands.build import build_cmd
from bootforge.cli.commands.clean import clean_cmd, reclaim_cmd
from bootforge.cli.commands.launch import kvm_cmd, run_cmd, test_cmd
from bootforge.config import ForgeSettings

app = typer.Typer(
    name="bootforge",
    help="Bootforge: build, provision and boot-test kernel media.",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)


@app.callback()
def _configure(
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Log every external command."
    ),
) -> None:
    level = "DEBUG" if verbose else ForgeSettings().log_level.upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )


# Register subcommands
app.command(name="build", help="Build the ISO, the disk image, or both.")(build_cmd)
app.command(name="run", help="Build, then boot under software emulation.")(run_cmd)
app.command(name="test", help="Build, then boot with interrupt tracing or a gdb stub.")(test_cmd)
app.command(name="kvm", help="Build, then boot with hardware acceleration.")(kvm_cmd)
app.command(name="clean", help="Remove generated images.")(clean_cmd)
app.command(name="reclaim", help="Release leaked loop devices and mounts.")(reclaim_cmd)
app.command(name="bootcheck", help="Verify the ISO boots under BIOS and UEFI.")(bootcheck_cmd)


def main() -> None:
    """CLI entry point."""
    app()


if __name__ == "__main__":
    main()
