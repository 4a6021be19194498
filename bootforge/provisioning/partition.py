"""GPT layout for a single-partition disk image.

A GUID partition table on 512-byte sectors reserves LBA 0 (protective MBR),
LBA 1 (primary header) and LBAs 2-33 (128 entries of 128 bytes); the backup
copy occupies the last 33 sectors.  The one data partition starts at the
1 MiB alignment boundary and runs to the last usable LBA, so it covers the
whole addressable space.
"""

from __future__ import annotations

from bootforge.models.config import MIB, SECTOR_SIZE
from bootforge.models.disk import PartitionLayout

GPT_ENTRY_SECTORS = 32  # 128 entries * 128 bytes / 512
GPT_HEADER_SECTORS = 1
ALIGNMENT_SECTORS = MIB // SECTOR_SIZE  # 2048

LINUX_FILESYSTEM_GUID = "0FC63DAF-8483-4772-8E79-3D69D8477DE4"

MIN_IMAGE_SIZE = 4 * MIB


def compute_layout(size_bytes: int) -> PartitionLayout:
    """Compute the single-partition GPT layout for an image of *size_bytes*.

    Raises ``ValueError`` for sizes that are not whole sectors or are
    below ``MIN_IMAGE_SIZE``.
    """
    if size_bytes % SECTOR_SIZE:
        raise ValueError(f"image size {size_bytes} is not a multiple of {SECTOR_SIZE}")
    if size_bytes < MIN_IMAGE_SIZE:
        raise ValueError(f"image size {size_bytes} is below the minimum {MIN_IMAGE_SIZE}")

    total = size_bytes // SECTOR_SIZE
    first_usable = 2 + GPT_ENTRY_SECTORS  # protective MBR + header + entries
    last_usable = total - 1 - GPT_HEADER_SECTORS - GPT_ENTRY_SECTORS

    return PartitionLayout(
        total_sectors=total,
        first_usable_lba=first_usable,
        last_usable_lba=last_usable,
        start_lba=ALIGNMENT_SECTORS,
        end_lba=last_usable,
        type_guid=LINUX_FILESYSTEM_GUID,
    )


def sfdisk_script(layout: PartitionLayout, name: str = "") -> str:
    """Render *layout* as an sfdisk input script."""
    entry = (
        f"start={layout.start_lba}, size={layout.size_sectors}, "
        f"type={layout.type_guid}"
    )
    if name:
        entry += f', name="{name}"'
    return "\n".join([
        "label: gpt",
        "unit: sectors",
        f"first-lba: {layout.first_usable_lba}",
        f"last-lba: {layout.last_usable_lba}",
        "",
        entry,
        "",
    ])
