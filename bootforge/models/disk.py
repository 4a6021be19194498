"""Disk provisioning models — the state machine and the resources it owns."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class ProvisionState(str, Enum):
    """Linear states of one disk provisioning run."""

    UNALLOCATED = "unallocated"
    SIZED = "sized"
    PARTITIONED = "partitioned"
    LOOP_ATTACHED = "loop_attached"
    FORMATTED = "formatted"
    MOUNTED = "mounted"
    POPULATED = "populated"
    UNMOUNTED = "unmounted"
    LOOP_DETACHED = "loop_detached"
    READY = "ready"


PROVISION_SEQUENCE: list[ProvisionState] = list(ProvisionState)

# Each state is reachable only from its predecessor.
NEXT_STATE: dict[ProvisionState, ProvisionState] = {
    current: following
    for current, following in zip(PROVISION_SEQUENCE, PROVISION_SEQUENCE[1:])
}


class PartitionLayout(BaseModel):
    """A GPT with exactly one partition spanning the usable space.

    All values are in 512-byte sectors.  The partition starts after the
    1 MiB alignment reserve and ends at the last LBA not claimed by the
    backup GPT header and entry array.
    """

    model_config = ConfigDict(frozen=True)

    total_sectors: int
    first_usable_lba: int
    last_usable_lba: int
    start_lba: int
    end_lba: int
    type_guid: str

    @property
    def size_sectors(self) -> int:
        return self.end_lba - self.start_lba + 1


class DiskImage(BaseModel):
    """The raw image file and the layout written into it."""

    model_config = ConfigDict(frozen=True)

    path: Path
    size_bytes: int
    layout: PartitionLayout


class LoopDevice(BaseModel):
    """An attached loopback device.  Exclusively owned by one run."""

    model_config = ConfigDict(frozen=True)

    node: str
    backing_file: Path
    partitions: list[str] = []

    @property
    def first_partition(self) -> str:
        return self.partitions[0]


class MountPoint(BaseModel):
    """A scratch mount of the image partition."""

    path: Path
    device: str
    mounted: bool = False
