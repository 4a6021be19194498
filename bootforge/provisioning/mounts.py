"""Scratch mounts of the image partition."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from bootforge.core.errors import BootforgeError, ExternalToolFailure
from bootforge.core.runner import CommandRunner
from bootforge.models.disk import MountPoint

logger = logging.getLogger(__name__)


class MountManager:
    """Mounts a partition at a scratch directory and always unmounts it."""

    def __init__(self, runner: CommandRunner, fstype: str = "ext2") -> None:
        self._runner = runner
        self._fstype = fstype
        # Mount points that could not be released, even lazily.
        self.leaked: list[Path] = []

    def mount(self, device: str, path: Path) -> MountPoint:
        path = Path(path)
        path.mkdir(parents=True, exist_ok=True)
        try:
            self._runner.run(
                ["mount", "-t", self._fstype, device, str(path)], privileged=True
            )
        except BaseException:
            _remove_empty_dir(path)
            raise
        logger.info("Mounted %s at %s", device, path)
        return MountPoint(path=path, device=device, mounted=True)

    def unmount(self, mount_point: MountPoint) -> None:
        """Unmount, falling back to a lazy unmount if the tree is busy.

        If both fail the first failure is raised and the mount stays.
        """
        try:
            self._runner.run(["umount", str(mount_point.path)], privileged=True)
        except ExternalToolFailure as exc:
            logger.warning("umount %s failed, retrying lazily: %s", mount_point.path, exc)
            try:
                self._runner.run(
                    ["umount", "--lazy", str(mount_point.path)], privileged=True
                )
            except ExternalToolFailure:
                self.leaked.append(mount_point.path)
                raise exc from None
        mount_point.mounted = False
        logger.info("Unmounted %s", mount_point.path)
        _remove_empty_dir(mount_point.path)

    @contextmanager
    def mounted(self, device: str, path: Path) -> Iterator[MountPoint]:
        """Mount *device* at *path* for the duration of the context.

        The unmount always runs; on the failure path its own error is
        logged so the body's error is the one that propagates.
        """
        mount_point = self.mount(device, path)
        try:
            yield mount_point
        except BaseException:
            try:
                self.unmount(mount_point)
            except BootforgeError as exc:
                logger.error("Could not unmount %s while unwinding: %s", path, exc)
            raise
        self.unmount(mount_point)

    def reclaim(self, path: Path) -> bool:
        """Unmount a scratch mount left behind by a crashed run."""
        path = Path(path)
        if not os.path.ismount(path):
            return False
        logger.warning("Unmounting stale scratch mount %s", path)
        self.unmount(MountPoint(path=path, device="", mounted=True))
        return True


def _remove_empty_dir(path: Path) -> None:
    try:
        Path(path).rmdir()
    except OSError:
        logger.debug("Leaving scratch directory %s in place", path)
