"""Hybrid boot verification.

Boots the optical image headless once per firmware path (legacy BIOS and
UEFI via OVMF), lets it run for a bounded time, and looks for a marker the
bootloader writes to the serial console.  Both paths must reach the marker
for the image to count as hybrid-bootable.
"""

from __future__ import annotations

import logging
import tempfile
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from bootforge.config import ForgeSettings
from bootforge.core.errors import ExternalToolFailure, MissingInputError
from bootforge.core.runner import CommandRunner
from bootforge.harness.qemu import build_emulator_command
from bootforge.models.config import PipelineConfig
from bootforge.models.profile import RunProfile

logger = logging.getLogger(__name__)


class Firmware(str, Enum):
    BIOS = "bios"
    EFI = "efi"


class BootCheckResult(BaseModel):
    """Whether one firmware path reached the serial marker."""

    model_config = ConfigDict(frozen=True)

    firmware: Firmware
    marker: str
    reached: bool
    serial_excerpt: str = ""


class BootVerifier:
    """Boots the ISO under each firmware and scans the serial log."""

    def __init__(
        self,
        config: PipelineConfig,
        runner: CommandRunner,
        settings: ForgeSettings | None = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.settings = settings or ForgeSettings()

    def command(self, firmware: Firmware, serial_log: Path) -> list[str]:
        argv = build_emulator_command(
            RunProfile(serial_log=serial_log), self.config, self.settings
        )
        argv += ["-display", "none", "-no-reboot"]
        if firmware == Firmware.EFI:
            argv += [
                "-drive",
                f"if=pflash,format=raw,readonly=on,file={self.settings.ovmf_code}",
            ]
        return argv

    def verify(self, firmware: Firmware) -> BootCheckResult:
        iso = self.config.resolve(self.config.iso_image)
        if not iso.exists():
            raise MissingInputError(iso, "bootcheck")
        if firmware == Firmware.EFI and not Path(self.settings.ovmf_code).exists():
            raise MissingInputError(self.settings.ovmf_code, "bootcheck")

        marker = self.settings.boot_marker
        with tempfile.TemporaryDirectory(prefix="bootforge-") as tmp:
            serial_log = Path(tmp) / f"serial-{firmware.value}.log"
            argv = self.command(firmware, serial_log)
            logger.info("Boot check (%s): %s", firmware.value, " ".join(argv))
            try:
                self.runner.run(argv, timeout=self.settings.bootcheck_timeout_seconds)
            except ExternalToolFailure as exc:
                # A kernel that keeps running is expected to hit the timeout.
                if not exc.timed_out:
                    raise
            output = (
                serial_log.read_text(encoding="utf-8", errors="replace")
                if serial_log.exists()
                else ""
            )

        reached = marker in output
        logger.info(
            "Boot check (%s): marker %r %s",
            firmware.value,
            marker,
            "reached" if reached else "NOT reached",
        )
        return BootCheckResult(
            firmware=firmware,
            marker=marker,
            reached=reached,
            serial_excerpt=output[-2000:],
        )

    def verify_all(self) -> list[BootCheckResult]:
        return [self.verify(fw) for fw in Firmware]
