"""Run profiles — the single value that parameterizes an emulator launch."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict


class Medium(str, Enum):
    OPTICAL = "optical"
    OPTICAL_AND_DISK = "optical+disk"


class Accelerator(str, Enum):
    TCG = "tcg"  # software emulation
    KVM = "kvm"
    WHPX = "whpx"


class DebugMode(str, Enum):
    NONE = "none"
    INTERRUPT_TRACE = "interrupt-trace"  # -d int with SMM disabled
    REMOTE_DEBUG = "remote-debug"  # gdb stub, CPU paused at boot


class RunProfile(BaseModel):
    """How to boot the generated media.  Pure value, never persisted."""

    model_config = ConfigDict(frozen=True)

    medium: Medium = Medium.OPTICAL
    accelerator: Accelerator = Accelerator.TCG
    debug: DebugMode = DebugMode.NONE
    serial_log: Path | None = None  # None: the controlling terminal

    @property
    def needs_disk(self) -> bool:
        return self.medium == Medium.OPTICAL_AND_DISK

    @classmethod
    def default(cls, *, disk: bool = False) -> RunProfile:
        return cls(medium=_medium(disk))

    @classmethod
    def trace(cls, *, disk: bool = False, gdb: bool = False) -> RunProfile:
        return cls(
            medium=_medium(disk),
            debug=DebugMode.REMOTE_DEBUG if gdb else DebugMode.INTERRUPT_TRACE,
        )

    @classmethod
    def accelerated(cls, *, disk: bool = False, whpx: bool = False) -> RunProfile:
        return cls(
            medium=_medium(disk),
            accelerator=Accelerator.WHPX if whpx else Accelerator.KVM,
        )


def _medium(disk: bool) -> Medium:
    return Medium.OPTICAL_AND_DISK if disk else Medium.OPTICAL
