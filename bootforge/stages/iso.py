"""Hybrid BIOS/EFI optical image assembly.

The mastering tool writes an ISO 9660 volume with two El-Torito catalog
entries: the Limine CD image for BIOS and the Limine EFI image for UEFI.
Limine's installer then patches the result in place so it also carries
legacy MBR bootstrap code, which mastering alone does not provide.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

from bootforge.models.config import PipelineConfig
from bootforge.models.stages import StageDefinition
from bootforge.stages.base import BaseStage
from bootforge.stages.bootloader import BootloaderProvisioner
from bootforge.stages.kernel import KernelBuilder

logger = logging.getLogger(__name__)


def staged_files(config: PipelineConfig) -> list[Path]:
    """Files copied into the ISO root, in staging order."""
    pin = config.bootloader
    return [
        config.resolve(config.kernel_binary),
        config.resolve(config.bootloader_config),
        config.bootloader_artifact(pin.bios_stage),
        config.bootloader_artifact(pin.cd_image),
        config.bootloader_artifact(pin.efi_image),
    ]


def mastering_command(config: PipelineConfig) -> list[str]:
    """xorriso invocation producing the hybrid-boot image."""
    pin = config.bootloader
    return [
        "xorriso", "-as", "mkisofs",
        "-b", pin.cd_image,
        "-no-emul-boot", "-boot-load-size", "4", "-boot-info-table",
        "--efi-boot", pin.efi_image,
        "-efi-boot-part", "--efi-boot-image", "--protective-msdos-label",
        str(config.resolve(config.iso_root)),
        "-o", str(config.resolve(config.iso_image)),
    ]


def installer_command(config: PipelineConfig) -> list[str]:
    return [
        str(config.bootloader_artifact(config.bootloader.installer)),
        str(config.resolve(config.iso_image)),
    ]


class IsoAssembler(BaseStage):
    """Stages kernel and bootloader into a scratch root and masters the ISO."""

    STAGE_ID = "iso"

    @property
    def definition(self) -> StageDefinition:
        pin = self.config.bootloader
        return StageDefinition(
            stage_id=self.STAGE_ID,
            display_name="Optical image",
            ordinal=2.0,
            prerequisites=[BootloaderProvisioner.STAGE_ID, KernelBuilder.STAGE_ID],
            inputs=[
                *staged_files(self.config),
                self.config.bootloader_artifact(pin.installer),
            ],
            outputs=[self.config.resolve(self.config.iso_image)],
        )

    def recipe(self) -> dict[str, Any]:
        return {
            "mastering": mastering_command(self.config),
            "installer": installer_command(self.config),
        }

    def execute(self) -> None:
        iso_root = self.config.resolve(self.config.iso_root)

        # Re-runs must never see files staged by an earlier attempt.
        shutil.rmtree(iso_root, ignore_errors=True)
        iso_root.mkdir(parents=True)
        try:
            for source in staged_files(self.config):
                shutil.copy2(source, iso_root / source.name)
                logger.debug("Staged %s", source)

            self.runner.run(mastering_command(self.config))
            self.runner.run(installer_command(self.config))
        finally:
            shutil.rmtree(iso_root, ignore_errors=True)
