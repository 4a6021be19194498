"""Error taxonomy for Bootforge pipeline runs.

Every failure is fatal to the current run and is never retried.  The
hierarchy lets an operator tell apart a broken tool, a leaked host
resource, and a missing privilege at a glance.

Exception Hierarchy::

    BootforgeError
        ├── ExternalToolFailure
        ├── ResourceAcquisitionFailure
        ├── PrivilegeError
        ├── StaleArtifactError
        ├── MissingInputError
        ├── StageOutputMissingError
        ├── InvalidTransitionError
        ├── CyclicDependencyError
        └── UnknownTargetError
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path


class BootforgeError(RuntimeError):
    """Base exception for all pipeline errors."""

    exit_code: int = 1


class ExternalToolFailure(BootforgeError):
    """An invoked program exited nonzero, timed out, or could not be started."""

    def __init__(
        self,
        tool: str,
        argv: Sequence[str],
        returncode: int,
        stderr: str = "",
        *,
        timed_out: bool = False,
    ) -> None:
        self.tool = tool
        self.argv = list(argv)
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out
        if timed_out:
            msg = f"{tool} timed out: {' '.join(self.argv)}"
        else:
            msg = f"{tool} exited with status {returncode}: {' '.join(self.argv)}"
        if stderr:
            msg += f"\n{stderr.strip()}"
        super().__init__(msg)

    @property
    def exit_code(self) -> int:  # type: ignore[override]
        # The process exit code mirrors the failing tool, never 0.
        return self.returncode if self.returncode > 0 else 1


class ResourceAcquisitionFailure(BootforgeError):
    """A host-global resource (loop device, lock, mount) could not be acquired.

    Usually left behind by a prior failed run; ``bootforge reclaim``
    releases what belongs to this pipeline.
    """

    def __init__(self, resource: str, reason: str) -> None:
        self.resource = resource
        self.reason = reason
        super().__init__(f"Cannot acquire {resource}: {reason}")


class PrivilegeError(BootforgeError):
    """An operation requiring elevated capability was rejected."""

    def __init__(self, tool: str, argv: Sequence[str], detail: str = "") -> None:
        self.tool = tool
        self.argv = list(argv)
        self.detail = detail
        msg = f"{tool} was denied the privilege it needs: {' '.join(self.argv)}"
        if detail:
            msg += f"\n{detail.strip()}"
        super().__init__(msg)


class StaleArtifactError(BootforgeError):
    """An output exists but cannot be trusted (no stamp, truncated, recipe drift)."""

    def __init__(self, path: Path, reason: str) -> None:
        self.path = Path(path)
        self.reason = reason
        super().__init__(f"Artifact {path} is stale: {reason}")


class MissingInputError(BootforgeError):
    """A declared stage input does not exist."""

    def __init__(self, path: Path, stage_id: str) -> None:
        self.path = Path(path)
        self.stage_id = stage_id
        super().__init__(f"Stage {stage_id} is missing input {path}")


class StageOutputMissingError(BootforgeError):
    """A stage finished successfully but did not produce a declared output."""

    def __init__(self, path: Path, stage_id: str) -> None:
        self.path = Path(path)
        self.stage_id = stage_id
        super().__init__(f"Stage {stage_id} did not produce {path}")


class InvalidTransitionError(BootforgeError):
    """A provisioning state transition was requested out of order."""


class CyclicDependencyError(BootforgeError):
    """The stage graph contains a cycle."""


class UnknownTargetError(BootforgeError):
    """The requested build target is not a known stage or alias."""

    def __init__(self, target: str, known: Sequence[str]) -> None:
        self.target = target
        super().__init__(
            f"Unknown target {target!r}. Known targets: {', '.join(known)}"
        )
