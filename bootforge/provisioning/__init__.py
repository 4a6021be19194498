"""Disk image provisioning over host-global resources.

Modules
-------
partition
    Pure GPT layout arithmetic and the sfdisk script it renders to.
loop
    ``LoopDevicePool`` — scoped attach/detach of loopback devices.
mounts
    ``MountManager`` — scoped mount/unmount of the image partition.
disk
    ``DiskImageProvisioner`` — the linear state machine tying them together.
"""

from bootforge.provisioning.disk import DiskImageProvisioner
from bootforge.provisioning.loop import LoopDevicePool
from bootforge.provisioning.mounts import MountManager
from bootforge.provisioning.partition import MIN_IMAGE_SIZE, compute_layout

__all__ = [
    "DiskImageProvisioner",
    "LoopDevicePool",
    "MountManager",
    "MIN_IMAGE_SIZE",
    "compute_layout",
]
