"""Pipeline configuration models.

``PipelineConfig`` describes the project layout: where inputs live, where
generated media goes, the pinned bootloader, and the disk payload.  It is
loaded from ``bootforge.toml`` or ``[tool.bootforge]`` in ``pyproject.toml``
and falls back to the defaults below.
"""

from __future__ import annotations

import tomllib
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict, field_validator

MIB = 1024 * 1024
SECTOR_SIZE = 512


class BootloaderPin(BaseModel):
    """Pinned third-party bootloader source."""

    model_config = ConfigDict(frozen=True)

    repository: str = "https://github.com/limine-bootloader/limine.git"
    revision: str = "v2.0-branch-binary"
    checkout_dir: Path = Path("limine")
    build_command: list[str] = ["make", "-C"]

    bios_stage: str = "limine.sys"
    cd_image: str = "limine-cd.bin"
    efi_image: str = "limine-eltorito-efi.bin"
    installer: str = "limine-install"

    @property
    def artifact_names(self) -> list[str]:
        return [self.bios_stage, self.cd_image, self.efi_image, self.installer]


class PayloadFile(BaseModel):
    """A file copied verbatim onto the disk image."""

    model_config = ConfigDict(frozen=True)

    source: Path
    destination: PurePosixPath

    @field_validator("destination")
    @classmethod
    def _absolute_inside_image(cls, value: PurePosixPath) -> PurePosixPath:
        if not value.is_absolute():
            raise ValueError(f"payload destination must be absolute: {value}")
        if ".." in value.parts:
            raise ValueError(f"payload destination escapes the image: {value}")
        return value

    @property
    def relative_destination(self) -> PurePosixPath:
        """Destination relative to the image root (for joining onto a mount)."""
        return self.destination.relative_to("/")


class PipelineConfig(BaseModel):
    """Project-level configuration for the media pipeline."""

    model_config = ConfigDict(frozen=True)

    project_root: Path = Path(".")
    state_dir: Path = Path(".bootforge")

    # Source inputs, never removed by clean
    bootloader_config: Path = Path("limine.cfg")
    target_descriptor: Path = Path("x86_64-griffin.json")
    linker_script: Path = Path("linker.ld")
    kernel_sources: list[Path] = [
        Path("Cargo.toml"),
        Path("src"),
        Path("x86_64-griffin.json"),
        Path("linker.ld"),
    ]

    # Kernel
    kernel_binary: Path = Path("target/target/debug/griffin")
    kernel_build_command: list[str] = ["cargo", "build"]

    # Bootloader
    bootloader: BootloaderPin = BootloaderPin()

    # Generated media
    iso_image: Path = Path("disk.iso")
    iso_root: Path = Path("iso_root")
    disk_image: Path = Path("disk.img")
    disk_image_size: int = 64 * MIB
    filesystem_label: str = "griffin"
    mount_dir: Path = Path(".bootforge/mnt")
    payload_home: PurePosixPath = PurePosixPath("/home")
    payloads: list[PayloadFile] | None = None

    # Emulator
    machine: str = "q35"
    memory: str = "2G"

    @field_validator("disk_image_size")
    @classmethod
    def _sector_multiple(cls, value: int) -> int:
        if value <= 0 or value % SECTOR_SIZE:
            raise ValueError(
                f"disk_image_size must be a positive multiple of {SECTOR_SIZE}"
            )
        return value

    # ------------------------------------------------------------------
    # Path resolution
    # ------------------------------------------------------------------

    def resolve(self, path: Path) -> Path:
        """Anchor a configured path at the project root."""
        path = Path(path)
        return path if path.is_absolute() else self.project_root / path

    @property
    def bootloader_dir(self) -> Path:
        return self.resolve(self.bootloader.checkout_dir)

    def bootloader_artifact(self, name: str) -> Path:
        return self.bootloader_dir / name

    @property
    def stamp_dir(self) -> Path:
        return self.resolve(self.state_dir) / "stamps"

    @property
    def lock_file(self) -> Path:
        return self.resolve(self.state_dir) / "provision.lock"

    @property
    def payload_files(self) -> list[PayloadFile]:
        """Configured payloads, or the default home-directory set."""
        if self.payloads is not None:
            return list(self.payloads)
        return [
            PayloadFile(
                source=p,
                destination=self.payload_home / Path(p).name,
            )
            for p in (self.bootloader_config, self.target_descriptor, self.linker_script)
        ]


def load_pipeline_config(path: Path | None = None, **overrides: Any) -> PipelineConfig:
    """Load a PipelineConfig from *path*, or discover one in the working dir.

    Discovery order: ``bootforge.toml``, then ``[tool.bootforge]`` in
    ``pyproject.toml``.  Relative paths are anchored at the directory that
    holds the file.  Keyword overrides win over file values.
    """
    data: dict[str, Any] = {}
    root = Path.cwd()

    if path is None:
        candidate = root / "bootforge.toml"
        if candidate.exists():
            path = candidate
        elif (root / "pyproject.toml").exists():
            with (root / "pyproject.toml").open("rb") as fh:
                data = tomllib.load(fh).get("tool", {}).get("bootforge", {})

    if path is not None:
        path = Path(path)
        with path.open("rb") as fh:
            data = tomllib.load(fh)
        root = path.resolve().parent

    data.setdefault("project_root", root)
    data.update(overrides)
    return PipelineConfig(**data)
