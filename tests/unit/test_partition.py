"""Tests for the single-partition GPT layout."""

from __future__ import annotations

import pytest

from bootforge.models.config import MIB
from bootforge.provisioning.partition import (
    ALIGNMENT_SECTORS,
    LINUX_FILESYSTEM_GUID,
    MIN_IMAGE_SIZE,
    compute_layout,
    sfdisk_script,
)


class TestComputeLayout:
    @pytest.mark.parametrize("size", [4 * MIB, 8 * MIB, 64 * MIB, 1024 * MIB, 64 * MIB + 512])
    def test_partition_spans_usable_space(self, size):
        layout = compute_layout(size)
        assert layout.total_sectors == size // 512
        assert layout.first_usable_lba == 34
        assert layout.last_usable_lba == layout.total_sectors - 34
        assert layout.start_lba == ALIGNMENT_SECTORS
        assert layout.end_lba == layout.last_usable_lba
        assert layout.start_lba >= layout.first_usable_lba
        assert layout.size_sectors == layout.end_lba - layout.start_lba + 1

    def test_linux_filesystem_type(self):
        assert compute_layout(MIN_IMAGE_SIZE).type_guid == LINUX_FILESYSTEM_GUID

    def test_rejects_partial_sector(self):
        with pytest.raises(ValueError, match="multiple of 512"):
            compute_layout(8 * MIB + 1)

    def test_rejects_too_small(self):
        with pytest.raises(ValueError, match="below the minimum"):
            compute_layout(MIN_IMAGE_SIZE - 512)


class TestSfdiskScript:
    def test_script_for_default_image(self):
        script = sfdisk_script(compute_layout(64 * MIB), name="griffin")
        lines = script.splitlines()
        assert lines[:4] == [
            "label: gpt",
            "unit: sectors",
            "first-lba: 34",
            "last-lba: 131038",
        ]
        assert lines[5] == (
            f"start=2048, size=128991, type={LINUX_FILESYSTEM_GUID}, name=\"griffin\""
        )

    def test_unnamed_partition(self):
        script = sfdisk_script(compute_layout(8 * MIB))
        assert "name=" not in script
        assert script.endswith("\n")
