"""Disk image stage — wraps the provisioner in the stage lifecycle."""

from __future__ import annotations

from typing import Any

from bootforge.models.stages import StageDefinition
from bootforge.provisioning.disk import DiskImageProvisioner
from bootforge.stages.base import BaseStage


class DiskImageStage(BaseStage):
    """Builds the raw GPT/ext2 disk image holding the payload files."""

    STAGE_ID = "disk"

    @property
    def definition(self) -> StageDefinition:
        return StageDefinition(
            stage_id=self.STAGE_ID,
            display_name="Disk image",
            ordinal=3.0,
            inputs=[self.config.resolve(p.source) for p in self.config.payload_files],
            outputs=[self.config.resolve(self.config.disk_image)],
            privileged=True,
        )

    def recipe(self) -> dict[str, Any]:
        return {
            "size": self.config.disk_image_size,
            "label": self.config.filesystem_label,
            "payloads": [
                [str(p.source), str(p.destination)] for p in self.config.payload_files
            ],
        }

    def provisioner(self) -> DiskImageProvisioner:
        return DiskImageProvisioner(self.config, self.runner, self.settings)

    def execute(self) -> None:
        self.provisioner().provision()

    def discard_outputs(self) -> None:
        # The provisioner removes a partial image itself.  An image it
        # refused to touch (held lock, leaked loop node) must survive so
        # ``reclaim`` can find what still references it.
        pass
