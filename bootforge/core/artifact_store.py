"""Artifact store — freshness checks and completion stamps.

An output is *fresh* iff it exists, its timestamp is not older than any
declared input, and a completion stamp vouches for it.  Stamps live under
``{state_dir}/stamps/{stage_id}.json`` and are written only after a stage
fully succeeded; they are invalidated before the stage runs again, so an
interrupted run can never leave a partially written output looking fresh.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import ValidationError

from bootforge.core.errors import MissingInputError, StaleArtifactError
from bootforge.models.artifacts import Artifact, ArtifactStamp
from bootforge.models.stages import StageDefinition

logger = logging.getLogger(__name__)


def latest_mtime_ns(path: Path) -> int:
    """Newest modification time at *path*, descending into directories.

    Returns 0 for a missing path.
    """
    path = Path(path)
    if not path.exists():
        return 0
    newest = path.stat().st_mtime_ns
    if path.is_dir():
        for dirpath, _dirnames, filenames in os.walk(path):
            newest = max(newest, Path(dirpath).stat().st_mtime_ns)
            for name in filenames:
                newest = max(newest, (Path(dirpath) / name).stat().st_mtime_ns)
    return newest


class ArtifactStore:
    """Tracks stage outputs and decides whether they must be rebuilt.

    Parameters
    ----------
    stamp_dir:
        Directory holding one completion stamp per stage.
    """

    def __init__(self, stamp_dir: Path) -> None:
        self._stamp_dir = Path(stamp_dir)

    def _stamp_path(self, stage_id: str) -> Path:
        return self._stamp_dir / f"{stage_id}.json"

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def observe(self, path: Path, definition: StageDefinition) -> Artifact:
        """Snapshot the current state of one output of *definition*."""
        path = Path(path)
        exists = path.exists()
        return Artifact(
            path=path,
            producer=definition.stage_id,
            inputs=list(definition.inputs),
            exists=exists,
            mtime_ns=path.stat().st_mtime_ns if exists else 0,
        )

    def read_stamp(self, stage_id: str) -> ArtifactStamp | None:
        path = self._stamp_path(stage_id)
        if not path.exists():
            return None
        try:
            return ArtifactStamp.model_validate_json(path.read_text(encoding="utf-8"))
        except (ValidationError, ValueError) as exc:
            logger.warning("Ignoring unreadable stamp %s: %s", path, exc)
            return None

    # ------------------------------------------------------------------
    # Freshness
    # ------------------------------------------------------------------

    def check_fresh(self, definition: StageDefinition, recipe_hash: str) -> None:
        """Raise ``StaleArtifactError`` unless every output is fresh.

        Raises ``MissingInputError`` when a declared input is absent; by
        the time a stage is evaluated its upstream stages have produced
        their outputs, so an absent input is a missing source file.
        """
        newest_input = 0
        for input_path in definition.inputs:
            if not Path(input_path).exists():
                raise MissingInputError(input_path, definition.stage_id)
            newest_input = max(newest_input, latest_mtime_ns(input_path))

        stamp = self.read_stamp(definition.stage_id)

        for output_path in definition.outputs:
            artifact = self.observe(output_path, definition)
            if not artifact.exists:
                raise StaleArtifactError(output_path, "missing")
            if artifact.mtime_ns < newest_input:
                raise StaleArtifactError(output_path, "older than its inputs")
            if stamp is None:
                raise StaleArtifactError(
                    output_path, "no completion stamp (interrupted prior run?)"
                )
            if stamp.recipe_hash != recipe_hash:
                raise StaleArtifactError(output_path, "stage recipe changed")
            recorded = stamp.output_sizes.get(str(output_path))
            actual = Path(output_path).stat().st_size
            if recorded != actual:
                raise StaleArtifactError(
                    output_path,
                    f"size {actual} does not match stamped size {recorded}",
                )

    def is_fresh(self, definition: StageDefinition, recipe_hash: str) -> bool:
        """True when ``check_fresh`` passes; logs the reason otherwise."""
        try:
            self.check_fresh(definition, recipe_hash)
        except StaleArtifactError as exc:
            logger.info("%s must run: %s", definition.display_name, exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Stamps
    # ------------------------------------------------------------------

    def invalidate(self, stage_id: str) -> None:
        """Drop the stamp so a half-finished run is never trusted."""
        self._stamp_path(stage_id).unlink(missing_ok=True)

    def record(self, definition: StageDefinition, recipe_hash: str) -> ArtifactStamp:
        """Write the completion stamp for a stage whose outputs all exist."""
        stamp = ArtifactStamp(
            stage_id=definition.stage_id,
            recipe_hash=recipe_hash,
            output_sizes={
                str(p): Path(p).stat().st_size for p in definition.outputs
            },
        )
        self._stamp_dir.mkdir(parents=True, exist_ok=True)
        path = self._stamp_path(definition.stage_id)
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(stamp.model_dump_json(indent=2), encoding="utf-8")
        os.replace(tmp, path)
        return stamp
