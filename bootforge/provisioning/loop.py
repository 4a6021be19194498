"""Loopback device pool — narrow acquire/release over the host's loop table.

The loop table is global, mutable state outside this process.  ``attached``
hands out an owned ``LoopDevice`` whose detach is guaranteed on every exit
path.  Acquisition refuses to reuse anything: a backing file that is
already attached elsewhere, a saturated pool, or a busy pinned node all
raise ``ResourceAcquisitionFailure`` so a leak from an earlier run is
reported instead of silently inherited.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from bootforge.core.errors import (
    BootforgeError,
    ExternalToolFailure,
    ResourceAcquisitionFailure,
)
from bootforge.core.runner import CommandRunner
from bootforge.models.disk import LoopDevice

logger = logging.getLogger(__name__)

_POOL_EXHAUSTED = re.compile(
    r"could not find any free loop device|no free loop device", re.IGNORECASE
)
_NODE_BUSY = re.compile(r"device or resource busy|failed to set up loop device", re.IGNORECASE)


class LoopDevicePool:
    """Attaches and detaches loop devices through ``losetup``.

    Parameters
    ----------
    runner:
        Command runner used for every ``losetup``/``lsblk`` call.
    fixed_node:
        Attach to this node (e.g. ``/dev/loop7``) instead of the first
        free one.
    """

    def __init__(self, runner: CommandRunner, fixed_node: str | None = None) -> None:
        self._runner = runner
        self._fixed_node = fixed_node
        # Nodes whose detach failed; they stay bound to their backing file.
        self.leaked: list[str] = []

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def associated(self, backing_file: Path) -> list[str]:
        """Loop nodes currently bound to *backing_file*."""
        result = self._runner.run(
            ["losetup", "--associated", str(backing_file)], privileged=True
        )
        nodes = []
        for line in result.stdout.splitlines():
            node = line.split(":", 1)[0].strip()
            if node:
                nodes.append(node)
        return nodes

    def partitions(self, node: str) -> list[str]:
        """Partition nodes the kernel exposed for *node*."""
        result = self._runner.run(
            ["lsblk", "--list", "--noheadings", "--paths", "--output", "NAME", node]
        )
        names = [line.strip() for line in result.stdout.splitlines() if line.strip()]
        return [n for n in names if n != node]

    # ------------------------------------------------------------------
    # Acquire / release
    # ------------------------------------------------------------------

    def ensure_unattached(self, backing_file: Path) -> None:
        """Refuse a backing file that a loop node still holds."""
        stale = self.associated(backing_file)
        if stale:
            raise ResourceAcquisitionFailure(
                "loop device",
                f"{backing_file} is already attached as {', '.join(stale)}; "
                f"run 'bootforge reclaim' to release it",
            )

    def attach(self, backing_file: Path) -> str:
        """Bind *backing_file* to a loop node and return the node."""
        self.ensure_unattached(backing_file)

        if self._fixed_node:
            argv = ["losetup", "--partscan", self._fixed_node, str(backing_file)]
        else:
            argv = ["losetup", "--find", "--show", "--partscan", str(backing_file)]

        try:
            result = self._runner.run(argv, privileged=True)
        except ExternalToolFailure as exc:
            if _POOL_EXHAUSTED.search(exc.stderr):
                raise ResourceAcquisitionFailure(
                    "loop device", "the loop device pool is exhausted"
                ) from exc
            if self._fixed_node and _NODE_BUSY.search(exc.stderr):
                raise ResourceAcquisitionFailure(
                    f"loop device {self._fixed_node}", "node is already in use"
                ) from exc
            raise

        node = self._fixed_node or result.stdout.strip()
        if not node:
            raise ResourceAcquisitionFailure("loop device", "losetup returned no device")
        logger.info("Attached %s to %s", backing_file, node)
        return node

    def detach(self, node: str) -> None:
        try:
            self._runner.run(["losetup", "--detach", node], privileged=True)
        except BaseException:
            self.leaked.append(node)
            raise
        logger.info("Detached %s", node)

    @contextmanager
    def attached(self, backing_file: Path) -> Iterator[LoopDevice]:
        """Attach *backing_file* for the duration of the context.

        Detach always runs.  When the body failed, a detach error is logged
        and the body's error propagates; otherwise the detach error does.
        """
        node = self.attach(backing_file)
        try:
            partitions = self.partitions(node)
            if not partitions:
                raise ResourceAcquisitionFailure(
                    f"partitions of {node}", "the kernel exposed no partition nodes"
                )
            yield LoopDevice(node=node, backing_file=backing_file, partitions=partitions)
        except BaseException:
            try:
                self.detach(node)
            except BootforgeError as exc:
                logger.error("Could not detach %s while unwinding: %s", node, exc)
            raise
        self.detach(node)

    def reclaim(self, backing_file: Path) -> list[str]:
        """Detach every loop node still bound to *backing_file*."""
        released = []
        for node in self.associated(backing_file):
            logger.warning("Detaching stale loop device %s", node)
            self.detach(node)
            released.append(node)
        return released
