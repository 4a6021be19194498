"""Pipeline orchestrator — the central coordinator for media builds.

The Orchestrator wires together the ArtifactStore, the StageGraph, the
registered stages and the emulator harness into one build-and-launch
engine.  Stages run one at a time in dependency order; a stage whose
outputs are fresh is skipped, and the first failure stops the build.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from bootforge.config import ForgeSettings
from bootforge.core.artifact_store import ArtifactStore
from bootforge.core.errors import UnknownTargetError
from bootforge.core.runner import CommandRunner
from bootforge.core.stage_graph import StageGraph
from bootforge.harness.bootcheck import BootCheckResult, BootVerifier, Firmware
from bootforge.harness.qemu import TestHarness
from bootforge.models.config import PipelineConfig
from bootforge.models.profile import RunProfile
from bootforge.models.stages import BuildReport, StageOutcome, StageState
from bootforge.provisioning.disk import DiskImageProvisioner
from bootforge.stages import STAGE_REGISTRY, TARGET_ALIASES, BaseStage
from bootforge.stages.disk_image import DiskImageStage
from bootforge.stages.iso import IsoAssembler

logger = logging.getLogger(__name__)


class Orchestrator:
    """Central pipeline orchestrator.

    Parameters
    ----------
    config:
        Project configuration. Uses defaults if not provided.
    settings:
        Host settings (emulator binary, loop node, firmware paths).
    runner:
        Command runner every stage shares.  Tests pass a fake host here.
    """

    def __init__(
        self,
        config: PipelineConfig | None = None,
        *,
        settings: ForgeSettings | None = None,
        runner: CommandRunner | None = None,
    ) -> None:
        self.config = config or PipelineConfig()
        self.settings = settings or ForgeSettings()
        self.runner = runner or CommandRunner()

        self.store = ArtifactStore(self.config.stamp_dir)
        self.stages: dict[str, BaseStage] = {
            stage_id: stage_cls(self.config, self.runner, self.settings)
            for stage_id, stage_cls in STAGE_REGISTRY.items()
        }
        self.graph = StageGraph([s.definition for s in self.stages.values()])
        self.harness = TestHarness(self.config, self.runner, self.settings)

        self.last_report: BuildReport | None = None

    # ------------------------------------------------------------------
    # Build
    # ------------------------------------------------------------------

    def targets(self) -> list[str]:
        """Every name ``build`` accepts."""
        return [*self.graph.stage_ids, *TARGET_ALIASES]

    def _expand(self, target: str) -> list[str]:
        if target in TARGET_ALIASES:
            return list(TARGET_ALIASES[target])
        if target in self.stages:
            return [target]
        raise UnknownTargetError(target, self.targets())

    def build(self, target: str = IsoAssembler.STAGE_ID) -> BuildReport:
        """Bring *target* and everything it depends on up to date.

        Returns the ordered outcomes.  On failure the report (with the
        failing stage FAILED and the rest NOT_RUN) is kept in
        ``last_report`` and the stage's error is re-raised unchanged.
        """
        order = self.graph.resolve(*self._expand(target))
        report = BuildReport(target=target)
        self.last_report = report
        logger.info("Building %s: %s", target, " -> ".join(order))

        for index, stage_id in enumerate(order):
            stage = self.stages[stage_id]
            try:
                outcome = stage.run_stage(self.store)
            except BaseException as exc:
                report.outcomes.append(
                    StageOutcome(
                        stage_id=stage_id,
                        display_name=stage.display_name,
                        state=StageState.FAILED,
                        reason=str(exc) or type(exc).__name__,
                    )
                )
                for skipped in order[index + 1:]:
                    report.outcomes.append(
                        StageOutcome(
                            stage_id=skipped,
                            display_name=self.stages[skipped].display_name,
                            state=StageState.NOT_RUN,
                            reason=f"{stage_id} failed",
                        )
                    )
                raise
            report.outcomes.append(outcome)

        return report

    # ------------------------------------------------------------------
    # Clean
    # ------------------------------------------------------------------

    def clean(self, everything: bool = False) -> list[Path]:
        """Remove generated media and scratch state; return what was removed.

        Source inputs (bootloader config, target descriptor, linker script,
        kernel sources) are never touched.  ``everything`` also drops the
        bootloader checkout and the state directory.
        """
        removed: list[Path] = []

        for path in (
            self.config.resolve(self.config.iso_image),
            self.config.resolve(self.config.disk_image),
        ):
            if path.is_file():
                path.unlink()
                removed.append(path)
        for stage_id in (IsoAssembler.STAGE_ID, DiskImageStage.STAGE_ID):
            self.store.invalidate(stage_id)

        scratch = [
            self.config.resolve(self.config.iso_root),
            self.config.resolve(self.config.mount_dir),
        ]
        if everything:
            scratch += [
                self.config.bootloader_dir,
                self.config.resolve(self.config.state_dir),
            ]
        mounted: list[Path] = []
        for path in scratch:
            if not path.is_dir():
                continue
            if path.is_mount():
                logger.warning("%s is still mounted; run `bootforge reclaim`", path)
                mounted.append(path)
                continue
            # rmtree would descend into the live mount.
            held = [m for m in mounted if m.is_relative_to(path)]
            if held:
                logger.warning(
                    "Keeping %s; it holds mounted %s", path, ", ".join(map(str, held))
                )
                continue
            shutil.rmtree(path)
            removed.append(path)

        for path in removed:
            logger.info("Removed %s", path)
        if not removed:
            logger.info("Nothing to clean")
        return removed

    # ------------------------------------------------------------------
    # Emulator
    # ------------------------------------------------------------------

    def launch(self, profile: RunProfile) -> None:
        """Build the media *profile* needs, then run the emulator."""
        self.build(IsoAssembler.STAGE_ID)
        if profile.needs_disk:
            self.build(DiskImageStage.STAGE_ID)
        self.harness.launch(profile)

    def bootcheck(self, firmware: Firmware | None = None) -> list[BootCheckResult]:
        """Build the ISO and verify it boots under BIOS, EFI, or both."""
        self.build(IsoAssembler.STAGE_ID)
        verifier = BootVerifier(self.config, self.runner, self.settings)
        if firmware is None:
            return verifier.verify_all()
        return [verifier.verify(firmware)]

    # ------------------------------------------------------------------
    # Recovery
    # ------------------------------------------------------------------

    def reclaim(self) -> list[str]:
        """Release loop devices and mounts leaked by a crashed provisioning."""
        released = DiskImageProvisioner(self.config, self.runner, self.settings).reclaim()
        if released:
            self.store.invalidate(DiskImageStage.STAGE_ID)
        return released
