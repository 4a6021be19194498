"""Disk image provisioning — the resource-safety core.

One run walks a strictly linear state machine:

    unallocated -> sized -> partitioned -> loop_attached -> formatted
        -> mounted -> populated -> unmounted -> loop_detached -> ready

The loop device and the mount are scoped acquisitions, nested so they are
released in exactly the reverse order they were taken.  Whatever fails
(a tool, a copy, Ctrl-C, SIGTERM), the mount is released if it was taken
and the loop device is detached if it was attached, before the error
reaches the caller.  A failed run also removes its partial image file,
unless a release failed; then the image stays so ``reclaim`` can still
find the leftover loop node through it.

The whole run holds the host-wide provisioning lock, so two pipelines on
one machine never touch the loop table or the scratch mount concurrently.
"""

from __future__ import annotations

import logging
import shutil
import signal
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from bootforge.config import ForgeSettings
from bootforge.core.errors import InvalidTransitionError, MissingInputError
from bootforge.core.host_lock import host_lock
from bootforge.core.runner import CommandRunner
from bootforge.models.config import PipelineConfig
from bootforge.models.disk import (
    NEXT_STATE,
    DiskImage,
    PartitionLayout,
    ProvisionState,
)
from bootforge.provisioning.loop import LoopDevicePool
from bootforge.provisioning.mounts import MountManager
from bootforge.provisioning.partition import compute_layout, sfdisk_script

logger = logging.getLogger(__name__)

FILESYSTEM = "ext2"


@contextmanager
def _sigterm_as_interrupt() -> Iterator[None]:
    """Deliver SIGTERM as KeyboardInterrupt so scoped releases still run."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _interrupt(signum, _frame):
        raise KeyboardInterrupt(f"received {signal.Signals(signum).name}")

    previous = signal.signal(signal.SIGTERM, _interrupt)
    try:
        yield
    finally:
        signal.signal(signal.SIGTERM, previous)


class DiskImageProvisioner:
    """Produces a partitioned, formatted, populated raw disk image.

    Parameters
    ----------
    config:
        Pipeline configuration (image path, size, payload, mount dir).
    runner:
        Command runner for every privileged tool call.
    settings:
        Host settings (pinned loop node, lock path).
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
        self.loops = LoopDevicePool(runner, fixed_node=self.settings.loop_device)
        self.mounts = MountManager(runner, fstype=FILESYSTEM)
        self.state = ProvisionState.UNALLOCATED
        self.history: list[ProvisionState] = [self.state]

    @property
    def image_path(self) -> Path:
        return self.config.resolve(self.config.disk_image)

    @property
    def mount_path(self) -> Path:
        return self.config.resolve(self.config.mount_dir)

    @property
    def lock_path(self) -> Path:
        return self.settings.lock_path or self.config.lock_file

    # ------------------------------------------------------------------
    # State machine
    # ------------------------------------------------------------------

    def _advance(self, target: ProvisionState) -> None:
        expected = NEXT_STATE.get(self.state)
        if target != expected:
            raise InvalidTransitionError(
                f"Cannot move disk provisioning from {self.state.value} to "
                f"{target.value}; next state is "
                f"{expected.value if expected else 'none (terminal)'}"
            )
        logger.debug("Disk provisioning: %s -> %s", self.state.value, target.value)
        self.state = target
        self.history.append(target)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def provision(self) -> DiskImage:
        """Run the full state machine and return the finished image.

        Raises the first failure after every acquired resource has been
        released.  Raises ``ValueError`` for an unusable image size before
        anything is touched.
        """
        self.state = ProvisionState.UNALLOCATED
        self.history = [self.state]
        self.loops.leaked.clear()
        self.mounts.leaked.clear()

        layout = compute_layout(self.config.disk_image_size)
        self._check_payload_sources()
        image = self.image_path

        with host_lock(self.lock_path), _sigterm_as_interrupt():
            # A leaked loop node keeps the old image; leave it for reclaim.
            if image.exists():
                self.loops.ensure_unattached(image)
            try:
                self._run(image, layout)
            except BaseException:
                held = [*self.loops.leaked, *map(str, self.mounts.leaked)]
                if held:
                    # reclaim finds leaked loop nodes through their backing file.
                    logger.error(
                        "Disk provisioning failed after reaching %s; %s still held, "
                        "keeping %s for 'bootforge reclaim'",
                        self.state.value,
                        ", ".join(held),
                        image,
                    )
                else:
                    logger.error(
                        "Disk provisioning failed after reaching %s; "
                        "resources released, removing partial image",
                        self.state.value,
                    )
                    image.unlink(missing_ok=True)
                raise

        logger.info("Disk image ready at %s", image)
        return DiskImage(path=image, size_bytes=self.config.disk_image_size, layout=layout)

    def reclaim(self) -> list[str]:
        """Release a scratch mount and loop devices leaked by a crashed run."""
        released: list[str] = []
        with host_lock(self.lock_path):
            if self.mounts.reclaim(self.mount_path):
                released.append(str(self.mount_path))
            if self.image_path.exists():
                released.extend(self.loops.reclaim(self.image_path))
        return released

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _run(self, image: Path, layout: PartitionLayout) -> None:
        self._create_backing_file(image)
        self._advance(ProvisionState.SIZED)

        self._write_partition_table(image, layout)
        self._advance(ProvisionState.PARTITIONED)

        with self.loops.attached(image) as loop:
            self._advance(ProvisionState.LOOP_ATTACHED)
            partition = loop.first_partition

            self._format(partition)
            self._advance(ProvisionState.FORMATTED)

            with self.mounts.mounted(partition, self.mount_path) as mount_point:
                self._advance(ProvisionState.MOUNTED)
                self._populate(mount_point.path)
                self._advance(ProvisionState.POPULATED)

            self._advance(ProvisionState.UNMOUNTED)

        self._advance(ProvisionState.LOOP_DETACHED)
        self._advance(ProvisionState.READY)

    def _check_payload_sources(self) -> None:
        for payload in self.config.payload_files:
            source = self.config.resolve(payload.source)
            if not source.is_file():
                raise MissingInputError(source, "disk")

    def _create_backing_file(self, image: Path) -> None:
        image.parent.mkdir(parents=True, exist_ok=True)
        image.unlink(missing_ok=True)
        with image.open("wb") as fh:
            fh.truncate(self.config.disk_image_size)
        logger.info("Created %s (%d bytes)", image, self.config.disk_image_size)

    def _write_partition_table(self, image: Path, layout: PartitionLayout) -> None:
        self.runner.run(
            ["sfdisk", "--no-reread", "--no-tell-kernel", str(image)],
            input_text=sfdisk_script(layout, name=self.config.filesystem_label),
            privileged=True,
        )

    def _format(self, partition: str) -> None:
        self.runner.run(
            [f"mkfs.{FILESYSTEM}", "-F", "-q", "-L", self.config.filesystem_label, partition],
            privileged=True,
        )

    def _populate(self, root: Path) -> None:
        for payload in self.config.payload_files:
            source = self.config.resolve(payload.source)
            target = root / payload.relative_destination
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, target)
            logger.debug("Copied %s -> %s", source, payload.destination)
