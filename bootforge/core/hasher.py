"""Canonical hashing helpers for stage recipes and payload verification."""

from __future__ import annotations

import hashlib
import json
from pathlib import Path
from typing import Any

_CHUNK_SIZE = 1024 * 1024


def canonical_json_bytes(obj: Any) -> bytes:
    """Produce canonical JSON bytes — deterministic, sorted, compact.

    Paths and other non-JSON values are stringified so a recipe built from
    pydantic models hashes the same across runs.
    """
    return json.dumps(
        obj, sort_keys=True, separators=(",", ":"), ensure_ascii=True, default=str
    ).encode("utf-8")


def sha256_hex(data: bytes) -> str:
    """Return the SHA-256 hex digest of raw bytes."""
    return hashlib.sha256(data).hexdigest()


def sha256_file(path: Path) -> str:
    """Return the SHA-256 hex digest of a file, read in chunks."""
    digest = hashlib.sha256()
    with Path(path).open("rb") as fh:
        for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def compute_recipe_hash(stage_id: str, recipe: dict[str, Any]) -> str:
    """SHA-256 of canonical(stage_id + recipe).

    The recipe is everything that shapes a stage's outputs besides its
    input files: command lines, pinned revisions, sizes, payload lists.
    A change here makes previously stamped outputs stale.
    """
    payload = {"stage_id": stage_id, "recipe": recipe}
    return sha256_hex(canonical_json_bytes(payload))
