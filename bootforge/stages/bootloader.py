"""Bootloader provisioning — fetch and build the pinned Limine release once."""

from __future__ import annotations

import logging
import shutil
from typing import Any

from bootforge.models.stages import StageDefinition
from bootforge.stages.base import BaseStage

logger = logging.getLogger(__name__)


class BootloaderProvisioner(BaseStage):
    """Clones Limine at a pinned revision and builds its binaries.

    Idempotent: when the stamped binaries are present nothing runs.  A
    failed fetch or build removes the checkout so a half-built tree is
    never mistaken for a usable one.
    """

    STAGE_ID = "bootloader"

    @property
    def definition(self) -> StageDefinition:
        pin = self.config.bootloader
        return StageDefinition(
            stage_id=self.STAGE_ID,
            display_name="Bootloader",
            ordinal=0.0,
            outputs=[self.config.bootloader_artifact(n) for n in pin.artifact_names],
        )

    def recipe(self) -> dict[str, Any]:
        pin = self.config.bootloader
        return {
            "repository": pin.repository,
            "revision": pin.revision,
            "build_command": pin.build_command,
        }

    def execute(self) -> None:
        pin = self.config.bootloader
        checkout = self.config.bootloader_dir

        # A previous checkout without a stamp is untrusted.
        shutil.rmtree(checkout, ignore_errors=True)
        checkout.parent.mkdir(parents=True, exist_ok=True)

        logger.info("Fetching %s at %s", pin.repository, pin.revision)
        self.runner.run(
            [
                "git", "clone",
                f"--branch={pin.revision}",
                "--depth=1",
                pin.repository,
                str(checkout),
            ]
        )
        self.runner.run([*pin.build_command, str(checkout)])

    def discard_outputs(self) -> None:
        shutil.rmtree(self.config.bootloader_dir, ignore_errors=True)
