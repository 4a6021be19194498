"""Abstract base stage with an enforced rebuild lifecycle.

Every concrete stage inherits from BaseStage and implements ``definition``
and ``execute()``.  The ``run_stage()`` wrapper is **not overridable** — it
enforces the canonical ordering:

    recipe_hash -> freshness check -> invalidate stamp -> execute
        -> verify outputs -> record stamp

so a stage whose outputs are fresh performs no work, and a stage that fails
(or is interrupted) never leaves its outputs registered as fresh.
"""

from __future__ import annotations

import abc
import logging
import time
from pathlib import Path
from typing import Any, final

from bootforge.config import ForgeSettings
from bootforge.core.artifact_store import ArtifactStore
from bootforge.core.errors import StageOutputMissingError
from bootforge.core.hasher import compute_recipe_hash
from bootforge.core.runner import CommandRunner
from bootforge.models.config import PipelineConfig
from bootforge.models.stages import StageDefinition, StageOutcome, StageState

logger = logging.getLogger(__name__)


class BaseStage(abc.ABC):
    """Abstract base for all pipeline stages.

    Subclasses **must** implement:
        * ``definition`` — the stage's ``StageDefinition`` (id, inputs,
          outputs, prerequisites) derived from the pipeline config.
        * ``execute()`` — run the external commands that produce outputs.

    Subclasses **may** override:
        * ``recipe()`` — everything besides input files that shapes the
          outputs; part of the freshness check.
        * ``discard_outputs()`` — remove partial results after a failure.

    Subclasses **must not** override ``run_stage()``.
    """

    def __init__(
        self,
        config: PipelineConfig,
        runner: CommandRunner,
        settings: ForgeSettings | None = None,
    ) -> None:
        self.config = config
        self.runner = runner
        self.settings = settings or ForgeSettings()

    # ------------------------------------------------------------------
    # Abstract interface
    # ------------------------------------------------------------------

    @property
    @abc.abstractmethod
    def definition(self) -> StageDefinition:
        """Declared inputs, outputs and prerequisites."""
        ...

    @abc.abstractmethod
    def execute(self) -> None:
        """Produce every declared output or raise."""
        ...

    def recipe(self) -> dict[str, Any]:
        return {}

    def discard_outputs(self) -> None:
        for output in self.definition.outputs:
            Path(output).unlink(missing_ok=True)

    # ------------------------------------------------------------------
    # Lifecycle (NOT overridable)
    # ------------------------------------------------------------------

    @property
    def stage_id(self) -> str:
        return self.definition.stage_id

    @property
    def display_name(self) -> str:
        return self.definition.display_name

    @final
    def recipe_hash(self) -> str:
        return compute_recipe_hash(self.stage_id, self.recipe())

    @final
    def run_stage(self, store: ArtifactStore) -> StageOutcome:
        """Run the stage if any output is stale.  **Do not override.**

        Returns a FRESH outcome without running anything when the store
        vouches for every output; otherwise a PASSED outcome.  Any error
        propagates unchanged after partial outputs are discarded.
        """
        definition = self.definition
        recipe_hash = self.recipe_hash()

        if store.is_fresh(definition, recipe_hash):
            logger.info("%s [%s] is fresh", self.display_name, self.stage_id)
            return StageOutcome(
                stage_id=self.stage_id,
                display_name=self.display_name,
                state=StageState.FRESH,
                reason="outputs up to date",
            )

        store.invalidate(self.stage_id)
        logger.info("%s [%s] running", self.display_name, self.stage_id)
        started = time.monotonic()

        try:
            self.execute()
            for output in definition.outputs:
                if not Path(output).exists():
                    raise StageOutputMissingError(output, self.stage_id)
        except BaseException as exc:
            logger.error(
                "%s [%s] failed: %s", self.display_name, self.stage_id, exc
            )
            self.discard_outputs()
            raise

        store.record(definition, recipe_hash)
        elapsed = time.monotonic() - started
        logger.info(
            "%s [%s] passed in %.1fs", self.display_name, self.stage_id, elapsed
        )
        return StageOutcome(
            stage_id=self.stage_id,
            display_name=self.display_name,
            state=StageState.PASSED,
            duration_seconds=elapsed,
        )
