"""Tests for the emulator harness — profile to argv, launch."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from bootforge.core.errors import ExternalToolFailure
from bootforge.harness.qemu import TestHarness, build_emulator_command
from bootforge.models.profile import Accelerator, DebugMode, Medium, RunProfile


class TestBuildEmulatorCommand:
    def test_default_profile(self, pipeline_config, settings):
        root = pipeline_config.project_root
        assert build_emulator_command(RunProfile.default(), pipeline_config, settings) == [
            "qemu-system-x86_64",
            "-M", "q35",
            "-m", "2G",
            "-serial", "stdio",
            "-cdrom", str(root / "disk.iso"),
            "-accel", "tcg",
        ]

    def test_disk_medium_attaches_ahci_drive(self, pipeline_config, settings):
        argv = build_emulator_command(RunProfile.default(disk=True), pipeline_config, settings)
        disk = pipeline_config.project_root / "disk.img"
        tail = argv[argv.index("-cdrom") + 2:]
        assert tail[:8] == [
            "-drive", f"id=disk,file={disk},format=raw,if=none",
            "-device", "ahci,id=ahci",
            "-device", "ide-hd,drive=disk,bus=ahci.0",
            "-boot", "d",
        ]

    def test_trace_profile(self, pipeline_config, settings):
        argv = build_emulator_command(RunProfile.trace(), pipeline_config, settings)
        assert argv[-4:] == ["-d", "int", "-M", "smm=off"]

    def test_gdb_profile(self, pipeline_config, settings):
        argv = build_emulator_command(RunProfile.trace(gdb=True), pipeline_config, settings)
        assert argv[-3:] == ["-S", "-gdb", "tcp::1234"]
        assert "-d" not in argv

    def test_gdb_port_from_settings(self, pipeline_config, settings):
        custom = settings.model_copy(update={"gdb_port": 4321})
        argv = build_emulator_command(RunProfile.trace(gdb=True), pipeline_config, custom)
        assert argv[-1] == "tcp::4321"

    @pytest.mark.parametrize(
        ("profile", "flags"),
        [
            (RunProfile.accelerated(), ["-accel", "kvm", "-cpu", "host"]),
            (RunProfile.accelerated(whpx=True), ["-accel", "whpx"]),
        ],
    )
    def test_accelerators(self, pipeline_config, settings, profile, flags):
        argv = build_emulator_command(profile, pipeline_config, settings)
        assert argv[-len(flags):] == flags

    def test_serial_log(self, pipeline_config, settings, tmp_path):
        profile = RunProfile(serial_log=tmp_path / "serial.log")
        argv = build_emulator_command(profile, pipeline_config, settings)
        assert argv[argv.index("-serial") + 1] == f"file:{tmp_path / 'serial.log'}"

    def test_same_profile_same_argv(self, pipeline_config, settings):
        profile = RunProfile(
            medium=Medium.OPTICAL_AND_DISK,
            accelerator=Accelerator.KVM,
            debug=DebugMode.INTERRUPT_TRACE,
            serial_log=Path("serial.log"),
        )
        first = build_emulator_command(profile, pipeline_config, settings)
        second = build_emulator_command(profile.model_copy(), pipeline_config, settings)
        assert first == second


class TestRunProfile:
    def test_factories(self):
        assert RunProfile.default() == RunProfile()
        assert RunProfile.trace(disk=True).needs_disk
        assert RunProfile.trace(gdb=True).debug == DebugMode.REMOTE_DEBUG
        assert RunProfile.accelerated().accelerator == Accelerator.KVM
        assert not RunProfile.accelerated().needs_disk

    def test_profile_is_immutable(self):
        with pytest.raises(ValidationError):
            RunProfile().accelerator = Accelerator.KVM  # type: ignore[misc]


class TestHarnessLaunch:
    def test_launch_is_interactive(self, pipeline_config, settings, fake_host):
        harness = TestHarness(pipeline_config, fake_host, settings)
        harness.launch(RunProfile.default())
        assert fake_host.calls == [harness.command(RunProfile.default())]

    def test_nonzero_exit_raises(self, pipeline_config, settings, fake_host):
        fake_host.emulator_returncode = 3
        harness = TestHarness(pipeline_config, fake_host, settings)
        with pytest.raises(ExternalToolFailure) as info:
            harness.launch(RunProfile.default())
        assert info.value.tool == "qemu-system-x86_64"
        assert info.value.exit_code == 3
