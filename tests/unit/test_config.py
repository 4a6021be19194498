"""Tests for ForgeSettings and PipelineConfig loading."""

from __future__ import annotations

from pathlib import Path, PurePosixPath

import pytest
from pydantic import ValidationError

from bootforge.config import ForgeSettings
from bootforge.models.config import (
    MIB,
    PayloadFile,
    PipelineConfig,
    load_pipeline_config,
)


class TestForgeSettings:
    def test_defaults(self, monkeypatch):
        for name in ("LOG_LEVEL", "QEMU_BINARY", "LOOP_DEVICE", "GDB_PORT"):
            monkeypatch.delenv(f"BOOTFORGE_{name}", raising=False)
        settings = ForgeSettings(_env_file=None)
        assert settings.log_level == "INFO"
        assert settings.qemu_binary == "qemu-system-x86_64"
        assert settings.loop_device is None
        assert settings.gdb_port == 1234
        assert settings.boot_marker == "Limine"

    def test_environment_overrides(self, monkeypatch):
        monkeypatch.setenv("BOOTFORGE_LOOP_DEVICE", "/dev/loop7")
        monkeypatch.setenv("BOOTFORGE_GDB_PORT", "9000")
        settings = ForgeSettings(_env_file=None)
        assert settings.loop_device == "/dev/loop7"
        assert settings.gdb_port == 9000


class TestPipelineConfig:
    def test_default_payload_under_home(self):
        config = PipelineConfig()
        assert [str(p.destination) for p in config.payload_files] == [
            "/home/limine.cfg",
            "/home/x86_64-griffin.json",
            "/home/linker.ld",
        ]

    def test_default_paths(self):
        config = PipelineConfig()
        assert config.kernel_binary == Path("target/target/debug/griffin")
        assert config.disk_image_size == 64 * MIB
        assert config.bootloader.revision == "v2.0-branch-binary"

    def test_resolve_anchors_relative_paths(self, tmp_path):
        config = PipelineConfig(project_root=tmp_path)
        assert config.resolve(Path("disk.iso")) == tmp_path / "disk.iso"
        assert config.resolve(Path("/abs/x")) == Path("/abs/x")

    def test_image_size_must_be_whole_sectors(self):
        with pytest.raises(ValidationError):
            PipelineConfig(disk_image_size=64 * MIB + 1)

    def test_config_is_frozen(self):
        with pytest.raises(ValidationError):
            PipelineConfig().memory = "4G"  # type: ignore[misc]

    @pytest.mark.parametrize("destination", ["home/limine.cfg", "/home/../../etc/passwd"])
    def test_payload_destination_must_stay_inside_image(self, destination):
        with pytest.raises(ValidationError):
            PayloadFile(source=Path("limine.cfg"), destination=PurePosixPath(destination))


class TestLoadPipelineConfig:
    def test_reads_bootforge_toml(self, tmp_path):
        path = tmp_path / "bootforge.toml"
        path.write_text(
            'disk_image_size = 16777216\nmemory = "512M"\n'
            '[[payloads]]\nsource = "boot/extra.txt"\ndestination = "/etc/extra.txt"\n',
            encoding="utf-8",
        )
        config = load_pipeline_config(path)
        assert config.project_root == tmp_path.resolve()
        assert config.disk_image_size == 16 * MIB
        assert config.memory == "512M"
        assert config.payload_files == [
            PayloadFile(source=Path("boot/extra.txt"), destination=PurePosixPath("/etc/extra.txt"))
        ]

    def test_discovers_pyproject_table(self, tmp_path, monkeypatch):
        (tmp_path / "pyproject.toml").write_text(
            '[project]\nname = "griffin"\n[tool.bootforge]\nmachine = "pc"\n',
            encoding="utf-8",
        )
        monkeypatch.chdir(tmp_path)
        config = load_pipeline_config()
        assert config.machine == "pc"

    def test_defaults_without_any_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        config = load_pipeline_config(memory="1G")
        assert config.memory == "1G"
        assert config.project_root == tmp_path.resolve()
