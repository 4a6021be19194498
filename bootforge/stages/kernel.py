"""Kernel build — delegate to the kernel's own toolchain."""

from __future__ import annotations

from typing import Any

from bootforge.models.stages import StageDefinition
from bootforge.stages.base import BaseStage


class KernelBuilder(BaseStage):
    """Runs the kernel build command and expects one binary at a fixed path."""

    STAGE_ID = "kernel"

    @property
    def definition(self) -> StageDefinition:
        return StageDefinition(
            stage_id=self.STAGE_ID,
            display_name="Kernel",
            ordinal=1.0,
            inputs=[self.config.resolve(p) for p in self.config.kernel_sources],
            outputs=[self.config.resolve(self.config.kernel_binary)],
        )

    def recipe(self) -> dict[str, Any]:
        return {"command": self.config.kernel_build_command}

    def execute(self) -> None:
        self.runner.run(self.config.kernel_build_command, cwd=self.config.project_root)

    def discard_outputs(self) -> None:
        # The toolchain owns its target directory; a failed build leaves
        # whatever binary it had, and the missing stamp marks it stale.
        pass
