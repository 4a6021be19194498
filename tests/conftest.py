"""Shared test fixtures for Bootforge.

``FakeHost`` stands in for the machine: it is a ``CommandRunner`` whose
``_execute`` simulates the tools the pipeline drives.  It keeps a loop
table and a mount table so tests can assert that nothing leaks, and it
can be told to fail or be interrupted at any call.
"""

from __future__ import annotations

import shutil
from dataclasses import dataclass
from pathlib import Path

import pytest

from bootforge.config import ForgeSettings
from bootforge.core.orchestrator import Orchestrator
from bootforge.core.runner import CommandResult, CommandRunner, tool_name
from bootforge.models.config import MIB, PipelineConfig

LIMINE_ARTIFACTS = (
    "limine.sys",
    "limine-cd.bin",
    "limine-eltorito-efi.bin",
    "limine-install",
)


@dataclass
class _Rule:
    tool: str
    match: str | None
    returncode: int
    stderr: str
    interrupt: bool


class FakeHost(CommandRunner):
    """Simulated host: records every call and fakes tool side effects.

    Attributes
    ----------
    calls:
        Every argv passed to the runner, in order.
    loops:
        Loop node -> backing file path, for attached nodes.
    mounts:
        Mount directory -> device, for active mounts.
    filesystems:
        Partition node -> {relative path: bytes} as of the last unmount.
    """

    def __init__(self, loop_nodes: int = 8) -> None:
        self.calls: list[list[str]] = []
        self.inputs: dict[str, str | None] = {}
        self.loops: dict[str, str] = {}
        self.mounts: dict[str, str] = {}
        self.filesystems: dict[str, dict[str, bytes]] = {}
        self.labels: dict[str, str] = {}
        self.partition_tables: dict[str, str] = {}
        self.loop_nodes = [f"/dev/loop{i}" for i in range(loop_nodes)]
        self.emulator_returncode = 0
        self.serial_output = ""
        self._rules: list[_Rule] = []

    # ------------------------------------------------------------------
    # Failure injection
    # ------------------------------------------------------------------

    def fail(
        self,
        tool: str,
        *,
        match: str | None = None,
        returncode: int = 1,
        stderr: str = "simulated failure",
    ) -> None:
        """Make the next matching call exit nonzero."""
        self._rules.append(_Rule(tool, match, returncode, stderr, interrupt=False))

    def interrupt(self, tool: str, *, match: str | None = None) -> None:
        """Raise KeyboardInterrupt at the next matching call."""
        self._rules.append(_Rule(tool, match, 0, "", interrupt=True))

    def _take_rule(self, argv: list[str]) -> _Rule | None:
        for rule in self._rules:
            if tool_name(argv) != rule.tool:
                continue
            if rule.match is not None and rule.match not in " ".join(argv):
                continue
            self._rules.remove(rule)
            return rule
        return None

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def tools(self) -> list[str]:
        return [tool_name(argv) for argv in self.calls]

    def calls_to(self, tool: str) -> list[list[str]]:
        return [argv for argv in self.calls if tool_name(argv) == tool]

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def _execute(self, argv, *, input_text, cwd, interactive, timeout):
        self.calls.append(list(argv))
        self.inputs[" ".join(argv)] = input_text

        rule = self._take_rule(argv)
        if rule is not None:
            if rule.interrupt:
                raise KeyboardInterrupt(f"interrupted at {tool_name(argv)}")
            return CommandResult(argv=argv, returncode=rule.returncode, stderr=rule.stderr)

        handler = getattr(self, "_sim_" + tool_name(argv).replace(".", "_").replace("-", "_"), None)
        if handler is None:
            if tool_name(argv).startswith("qemu-system"):
                return self._sim_qemu(argv)
            return CommandResult(argv=argv, returncode=0)
        return handler(argv, input_text=input_text, cwd=cwd)

    @staticmethod
    def _ok(argv, stdout: str = "") -> CommandResult:
        return CommandResult(argv=argv, returncode=0, stdout=stdout)

    @staticmethod
    def _err(argv, stderr: str, returncode: int = 1) -> CommandResult:
        return CommandResult(argv=argv, returncode=returncode, stderr=stderr)

    # Bootloader and kernel ---------------------------------------------

    def _sim_git(self, argv, **_):
        Path(argv[-1]).mkdir(parents=True)
        (Path(argv[-1]) / "Makefile").write_text("all:\n", encoding="utf-8")
        return self._ok(argv)

    def _sim_make(self, argv, **_):
        checkout = Path(argv[-1])
        if not checkout.is_dir():
            return self._err(argv, f"make: *** {checkout}: No such file or directory.", 2)
        for name in LIMINE_ARTIFACTS:
            (checkout / name).write_bytes(f"{name} binary".encode())
        return self._ok(argv)

    def _sim_cargo(self, argv, *, cwd, **_):
        binary = Path(cwd) / "target" / "target" / "debug" / "griffin"
        binary.parent.mkdir(parents=True, exist_ok=True)
        binary.write_bytes(b"\x7fELF griffin kernel")
        return self._ok(argv)

    # Optical image -----------------------------------------------------

    def _sim_xorriso(self, argv, **_):
        out = Path(argv[argv.index("-o") + 1])
        root = Path(argv[argv.index("-o") - 1])
        listing = sorted(p.name for p in root.iterdir())
        out.write_bytes(("ISO9660:" + ",".join(listing)).encode())
        return self._ok(argv)

    def _sim_limine_install(self, argv, **_):
        image = Path(argv[-1])
        if not image.is_file():
            return self._err(argv, f"limine-install: cannot open {image}")
        with image.open("ab") as fh:
            fh.write(b"+MBR")
        return self._ok(argv)

    # Disk image --------------------------------------------------------

    def _sim_sfdisk(self, argv, *, input_text, **_):
        image = argv[-1]
        if not Path(image).is_file():
            return self._err(argv, f"sfdisk: cannot open {image}: No such file or directory")
        self.partition_tables[image] = input_text or ""
        return self._ok(argv)

    def _sim_losetup(self, argv, **_):
        if "--associated" in argv:
            backing = argv[-1]
            lines = [
                f"{node}: []: ({path})"
                for node, path in self.loops.items()
                if path == backing
            ]
            return self._ok(argv, "\n".join(lines))
        if "--detach" in argv:
            node = argv[-1]
            if node not in self.loops:
                return self._err(argv, f"losetup: {node}: detach failed: No such device or address")
            del self.loops[node]
            return self._ok(argv)
        if "--find" in argv:
            free = [n for n in self.loop_nodes if n not in self.loops]
            if not free:
                return self._err(argv, "losetup: could not find any free loop device")
            self.loops[free[0]] = argv[-1]
            return self._ok(argv, free[0] + "\n")
        node, backing = argv[-2], argv[-1]
        if node in self.loops:
            return self._err(
                argv,
                f"losetup: {backing}: failed to set up loop device: Device or resource busy",
            )
        self.loops[node] = backing
        return self._ok(argv)

    def _sim_lsblk(self, argv, **_):
        node = argv[-1]
        if node not in self.loops:
            return self._err(argv, f"lsblk: {node}: not a block device", 32)
        return self._ok(argv, f"{node}\n{node}p1\n")

    def _sim_mkfs_ext2(self, argv, **_):
        partition = argv[-1]
        self.filesystems[partition] = {}
        self.labels[partition] = argv[argv.index("-L") + 1]
        return self._ok(argv)

    def _sim_mount(self, argv, **_):
        device, directory = argv[-2], argv[-1]
        if device not in self.filesystems:
            return self._err(argv, f"mount: {directory}: wrong fs type, bad option", 32)
        for rel, data in self.filesystems[device].items():
            target = Path(directory) / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        self.mounts[directory] = device
        return self._ok(argv)

    def _sim_umount(self, argv, **_):
        directory = argv[-1]
        if directory not in self.mounts:
            return self._err(argv, f"umount: {directory}: not mounted.", 32)
        device = self.mounts.pop(directory)
        root = Path(directory)
        self.filesystems[device] = {
            str(p.relative_to(root)): p.read_bytes()
            for p in sorted(root.rglob("*"))
            if p.is_file()
        }
        for child in list(root.iterdir()):
            if child.is_dir():
                shutil.rmtree(child)
            else:
                child.unlink()
        return self._ok(argv)

    # Emulator ----------------------------------------------------------

    def _sim_qemu(self, argv):
        serial = argv[argv.index("-serial") + 1]
        if serial.startswith("file:") and self.serial_output:
            Path(serial[len("file:"):]).write_text(self.serial_output, encoding="utf-8")
        return CommandResult(argv=argv, returncode=self.emulator_returncode)


# ---------------------------------------------------------------------------
# Project fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def project(tmp_path: Path) -> Path:
    """A minimal kernel project with every source input present."""
    root = tmp_path / "griffin"
    (root / "src").mkdir(parents=True)
    (root / "src" / "main.rs").write_text("#![no_std]\n#![no_main]\n", encoding="utf-8")
    (root / "Cargo.toml").write_text('[package]\nname = "griffin"\n', encoding="utf-8")
    (root / "limine.cfg").write_text(
        "TIMEOUT=0\n:Griffin\nPROTOCOL=stivale2\nKERNEL_PATH=boot:///griffin\n",
        encoding="utf-8",
    )
    (root / "x86_64-griffin.json").write_text(
        '{"llvm-target": "x86_64-unknown-none", "arch": "x86_64"}\n', encoding="utf-8"
    )
    (root / "linker.ld").write_text("ENTRY(_start)\n", encoding="utf-8")
    return root


@pytest.fixture
def pipeline_config(project: Path) -> PipelineConfig:
    """Default layout anchored at the test project, with a small disk."""
    return PipelineConfig(project_root=project, disk_image_size=8 * MIB)


@pytest.fixture
def settings(tmp_path: Path) -> ForgeSettings:
    """Host settings isolated from the real environment."""
    ovmf = tmp_path / "OVMF_CODE.fd"
    ovmf.write_bytes(b"\0" * 16)
    return ForgeSettings(
        _env_file=None,
        log_level="DEBUG",
        loop_device=None,
        lock_path=tmp_path / "provision.lock",
        ovmf_code=ovmf,
        bootcheck_timeout_seconds=1.0,
    )


@pytest.fixture
def fake_host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def orchestrator(
    pipeline_config: PipelineConfig, settings: ForgeSettings, fake_host: FakeHost
) -> Orchestrator:
    """An Orchestrator driving the fake host."""
    return Orchestrator(pipeline_config, settings=settings, runner=fake_host)
