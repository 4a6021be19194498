"""External tool invocation — the single seam between Bootforge and the host.

Every program the pipeline drives (git, cargo, xorriso, sfdisk, losetup,
mount, qemu, ...) is started through ``CommandRunner.run``.  The runner
logs the argv, blocks until the process exits, and turns a nonzero exit
into a typed error:

- ``PrivilegeError`` when a privileged call is rejected for lack of
  capability (detected from the tool's diagnostics).
- ``ExternalToolFailure`` for everything else, including a missing binary
  (status 127) and a timeout.

Tests substitute a runner whose ``_execute`` simulates the host, so the
classification logic here is exercised as well.
"""

from __future__ import annotations

import logging
import re
import subprocess
from collections.abc import Sequence
from pathlib import Path

from pydantic import BaseModel, ConfigDict

from bootforge.core.errors import ExternalToolFailure, PrivilegeError

logger = logging.getLogger(__name__)

# Diagnostics emitted by util-linux, e2fsprogs and coreutils when the caller
# lacks CAP_SYS_ADMIN or write access to a device node.
_PRIVILEGE_PATTERNS = re.compile(
    r"permission denied|must be superuser|only root can|operation not permitted",
    re.IGNORECASE,
)


class CommandResult(BaseModel):
    """Outcome of one external program invocation."""

    model_config = ConfigDict(frozen=True)

    argv: list[str]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def tool(self) -> str:
        return tool_name(self.argv)


def tool_name(argv: Sequence[str]) -> str:
    """Return the identity of the program in *argv* (basename of argv[0])."""
    return Path(argv[0]).name if argv else "<empty>"


class CommandRunner:
    """Runs external programs synchronously and classifies their failures."""

    def run(
        self,
        argv: Sequence[str],
        *,
        input_text: str | None = None,
        cwd: Path | None = None,
        privileged: bool = False,
        interactive: bool = False,
        timeout: float | None = None,
    ) -> CommandResult:
        """Run *argv* to completion.

        Parameters
        ----------
        input_text:
            Text written to the program's stdin.
        privileged:
            The call needs elevated capability; rejections raise
            ``PrivilegeError`` instead of ``ExternalToolFailure``.
        interactive:
            Inherit the terminal instead of capturing output (emulator).
        timeout:
            Seconds before the process is killed and ``ExternalToolFailure``
            is raised with ``timed_out=True``.
        """
        argv = [str(a) for a in argv]
        tool = tool_name(argv)
        logger.debug("Running %s", " ".join(argv))

        try:
            result = self._execute(
                argv,
                input_text=input_text,
                cwd=cwd,
                interactive=interactive,
                timeout=timeout,
            )
        except FileNotFoundError as exc:
            raise ExternalToolFailure(tool, argv, 127, str(exc)) from exc
        except subprocess.TimeoutExpired as exc:
            raise ExternalToolFailure(tool, argv, -1, timed_out=True) from exc

        if result.returncode != 0:
            diagnostics = result.stderr.strip() or result.stdout.strip()
            if privileged and _PRIVILEGE_PATTERNS.search(diagnostics):
                logger.error("%s rejected for insufficient privilege", tool)
                raise PrivilegeError(tool, argv, diagnostics)
            logger.error("%s failed with status %d", tool, result.returncode)
            raise ExternalToolFailure(tool, argv, result.returncode, diagnostics)

        return result

    def _execute(
        self,
        argv: list[str],
        *,
        input_text: str | None,
        cwd: Path | None,
        interactive: bool,
        timeout: float | None,
    ) -> CommandResult:
        if interactive:
            completed = subprocess.run(argv, cwd=cwd, timeout=timeout)
            return CommandResult(argv=argv, returncode=completed.returncode)

        completed = subprocess.run(
            argv,
            input=input_text,
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return CommandResult(
            argv=argv,
            returncode=completed.returncode,
            stdout=completed.stdout or "",
            stderr=completed.stderr or "",
        )
