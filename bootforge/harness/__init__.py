"""Emulator harness — launching the generated media and verifying it boots."""

from bootforge.harness.bootcheck import BootCheckResult, BootVerifier, Firmware
from bootforge.harness.qemu import TestHarness, build_emulator_command

__all__ = [
    "BootCheckResult",
    "BootVerifier",
    "Firmware",
    "TestHarness",
    "build_emulator_command",
]
