"""Bootforge pipeline stages — registry mapping stage_id to stage class.

Usage::

    from bootforge.stages import STAGE_REGISTRY

    stage = STAGE_REGISTRY["iso"](config, runner)
    outcome = stage.run_stage(store)
"""

from __future__ import annotations

from bootforge.stages.base import BaseStage
from bootforge.stages.bootloader import BootloaderProvisioner
from bootforge.stages.disk_image import DiskImageStage
from bootforge.stages.iso import IsoAssembler
from bootforge.stages.kernel import KernelBuilder

STAGE_REGISTRY: dict[str, type[BaseStage]] = {
    BootloaderProvisioner.STAGE_ID: BootloaderProvisioner,
    KernelBuilder.STAGE_ID: KernelBuilder,
    IsoAssembler.STAGE_ID: IsoAssembler,
    DiskImageStage.STAGE_ID: DiskImageStage,
}

# Command-surface names -> stages they build.
TARGET_ALIASES: dict[str, list[str]] = {
    "build": [IsoAssembler.STAGE_ID],
    "all": [IsoAssembler.STAGE_ID, DiskImageStage.STAGE_ID],
}

__all__ = [
    "BaseStage",
    "BootloaderProvisioner",
    "DiskImageStage",
    "IsoAssembler",
    "KernelBuilder",
    "STAGE_REGISTRY",
    "TARGET_ALIASES",
]
