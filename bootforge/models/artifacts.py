"""Artifact models — file identity, freshness inputs, completion stamps."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class Artifact(BaseModel):
    """A file produced by a stage, observed at a point in time.

    Identity is the path.  ``mtime_ns`` is 0 when the file does not exist.
    """

    model_config = ConfigDict(frozen=True)

    path: Path
    producer: str
    inputs: list[Path] = []
    exists: bool = False
    mtime_ns: int = 0


class ArtifactStamp(BaseModel):
    """Completion record written only after a stage fully succeeded.

    An output without a matching stamp came from an interrupted or failed
    run, or from a different recipe, and must be rebuilt.
    """

    model_config = ConfigDict(frozen=True)

    stage_id: str
    recipe_hash: str
    output_sizes: dict[str, int]
    completed_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc)
    )
