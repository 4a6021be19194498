"""Host configuration — env-driven settings for the machine running the pipeline.

Project layout lives in ``PipelineConfig`` (``bootforge.toml``); this module
holds what differs from host to host: the emulator binary, a pinned loop
device node, firmware paths, and log verbosity.

Examples
--------
Override via environment::

    export BOOTFORGE_LOG_LEVEL=DEBUG
    export BOOTFORGE_QEMU_BINARY=qemu-system-x86_64.exe
    export BOOTFORGE_LOOP_DEVICE=/dev/loop7

Or via .env file::

    BOOTFORGE_OVMF_CODE=/usr/share/OVMF/OVMF_CODE.fd
"""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class ForgeSettings(BaseSettings):
    """Host settings with environment variable overrides."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="BOOTFORGE_",
        env_file_encoding="utf-8",
    )

    log_level: str = "INFO"

    # Emulator
    qemu_binary: str = "qemu-system-x86_64"
    gdb_port: int = 1234

    # Disk provisioning; None lets losetup pick a free node
    loop_device: str | None = None
    lock_path: Path | None = None  # defaults to <state_dir>/provision.lock

    # Hybrid boot verification
    ovmf_code: Path = Path("/usr/share/OVMF/OVMF_CODE.fd")
    boot_marker: str = "Limine"
    bootcheck_timeout_seconds: float = 20.0
