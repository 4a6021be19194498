"""Emulator test harness — RunProfile to QEMU argv, and launch.

``build_emulator_command`` is a pure mapping: the same profile and
configuration always produce the same argument list, so a test scenario
can be reproduced exactly from its profile.
"""

from __future__ import annotations

import logging

from bootforge.config import ForgeSettings
from bootforge.core.runner import CommandRunner
from bootforge.models.config import PipelineConfig
from bootforge.models.profile import Accelerator, DebugMode, RunProfile

logger = logging.getLogger(__name__)

_ACCELERATOR_FLAGS: dict[Accelerator, list[str]] = {
    Accelerator.TCG: ["-accel", "tcg"],
    Accelerator.KVM: ["-accel", "kvm", "-cpu", "host"],
    Accelerator.WHPX: ["-accel", "whpx"],
}


def build_emulator_command(
    profile: RunProfile,
    config: PipelineConfig,
    settings: ForgeSettings,
) -> list[str]:
    """Translate *profile* into the emulator's argv."""
    argv = [
        settings.qemu_binary,
        "-M", config.machine,
        "-m", config.memory,
    ]

    if profile.serial_log is not None:
        argv += ["-serial", f"file:{profile.serial_log}"]
    else:
        argv += ["-serial", "stdio"]

    argv += ["-cdrom", str(config.resolve(config.iso_image))]

    if profile.needs_disk:
        disk = config.resolve(config.disk_image)
        argv += [
            "-drive", f"id=disk,file={disk},format=raw,if=none",
            "-device", "ahci,id=ahci",
            "-device", "ide-hd,drive=disk,bus=ahci.0",
            "-boot", "d",
        ]

    argv += _ACCELERATOR_FLAGS[profile.accelerator]

    if profile.debug == DebugMode.INTERRUPT_TRACE:
        argv += ["-d", "int", "-M", "smm=off"]
    elif profile.debug == DebugMode.REMOTE_DEBUG:
        argv += ["-S", "-gdb", f"tcp::{settings.gdb_port}"]

    return argv


class TestHarness:
    """Launches the emulator against the generated media."""

    __test__ = False  # not a pytest class

    def __init__(
        self,
        config: PipelineConfig,
        runner: CommandRunner,
        settings: ForgeSettings | None = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.settings = settings or ForgeSettings()

    def command(self, profile: RunProfile) -> list[str]:
        return build_emulator_command(profile, self.config, self.settings)

    def launch(self, profile: RunProfile) -> None:
        """Run the emulator attached to the terminal until it exits.

        A nonzero emulator exit raises ``ExternalToolFailure``.
        """
        argv = self.command(profile)
        if profile.debug == DebugMode.REMOTE_DEBUG:
            logger.info(
                "CPU paused; attach a debugger to localhost:%d", self.settings.gdb_port
            )
        logger.info("Launching %s", " ".join(argv))
        self.runner.run(argv, interactive=True)
