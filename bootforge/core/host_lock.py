"""Host-wide lock serializing disk provisioning.

The loop-device table and the scratch mount point are shared by every
process on the machine, so two provisioning runs must never overlap.  The
lock is an ``flock`` on a sidecar file; the kernel drops it when the
holder exits, so a crashed run cannot wedge the next one.
"""

from __future__ import annotations

import fcntl
import logging
import os
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from bootforge.core.errors import ResourceAcquisitionFailure

logger = logging.getLogger(__name__)


@contextmanager
def host_lock(lock_path: Path) -> Iterator[None]:
    """Hold an exclusive, non-blocking lock on *lock_path* for the context.

    Raises ``ResourceAcquisitionFailure`` if another process holds it.
    """
    lock_path = Path(lock_path)
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    with lock_path.open("a+", encoding="utf-8") as handle:
        try:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            handle.seek(0)
            holder = handle.read().strip() or "unknown"
            raise ResourceAcquisitionFailure(
                f"provisioning lock {lock_path}",
                f"held by another pipeline run (pid {holder})",
            ) from exc

        handle.seek(0)
        handle.truncate()
        handle.write(str(os.getpid()))
        handle.flush()
        logger.debug("Acquired provisioning lock %s", lock_path)
        try:
            yield
        finally:
            handle.seek(0)
            handle.truncate()
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            logger.debug("Released provisioning lock %s", lock_path)
