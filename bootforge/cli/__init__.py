"""Bootforge CLI — Typer-based command-line interface.

Provides the ``bootforge`` command with subcommands for building the
boot media, launching it under the emulator, verifying hybrid boot, and
cleaning up generated files or leaked host resources.

All output uses Rich for formatted terminal display.
"""
