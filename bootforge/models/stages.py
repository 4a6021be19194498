"""Stage models — declared inputs/outputs and per-run outcomes."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class StageState(str, Enum):
    """Outcome of a stage within one pipeline invocation."""

    PENDING = "pending"
    RUNNING = "running"
    FRESH = "fresh"  # outputs up to date, nothing run
    PASSED = "passed"
    FAILED = "failed"
    NOT_RUN = "not_run"  # an earlier stage aborted the run


class StageDefinition(BaseModel):
    """Declares a pipeline stage and its place in the DAG.

    ``prerequisites`` encodes the graph; ``inputs`` and ``outputs`` drive
    the freshness check.  Inputs produced by a prerequisite only need to
    exist by the time this stage is evaluated.
    """

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    ordinal: float
    prerequisites: list[str] = []
    inputs: list[Path] = []
    outputs: list[Path] = []
    privileged: bool = False


class StageOutcome(BaseModel):
    """What happened to one stage during a build."""

    model_config = ConfigDict(frozen=True)

    stage_id: str
    display_name: str
    state: StageState
    reason: str = ""
    duration_seconds: float = 0.0


class BuildReport(BaseModel):
    """Ordered stage outcomes for one ``build(target)`` call."""

    target: str
    outcomes: list[StageOutcome] = []

    @property
    def executed(self) -> list[str]:
        """Stage ids that actually ran (passed or failed)."""
        return [
            o.stage_id
            for o in self.outcomes
            if o.state in (StageState.PASSED, StageState.FAILED)
        ]

    @property
    def succeeded(self) -> bool:
        return all(
            o.state in (StageState.PASSED, StageState.FRESH) for o in self.outcomes
        )

    def outcome(self, stage_id: str) -> StageOutcome | None:
        for o in self.outcomes:
            if o.stage_id == stage_id:
                return o
        return None
