"""Bootforge: build, provision and boot-test hobby kernel media.

Produces a hybrid BIOS/UEFI ISO from a kernel binary and a pinned Limine
bootloader, provisions a raw GPT/ext2 disk image through a loop device,
and boots either under QEMU with reproducible run profiles.
"""

__version__ = "0.1.0"

from bootforge.core.orchestrator import Orchestrator
from bootforge.cli.app import app as cli

__all__ = ["Orchestrator", "cli", "__version__"]
