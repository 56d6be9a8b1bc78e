"""Content fingerprints of export files.

Exports can be several hundred megabytes; the digest is computed from
fixed-size chunks read through aiofiles so the event loop stays responsive
for the sweeper.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import aiofiles.os

CHUNK_SIZE = 256 * 1024


@dataclass(frozen=True)
class FileFingerprint:
    """Identity of a file's bytes."""

    sha256: str
    size_bytes: int


async def compute_file_hash(file_path: Path, chunk_size: int = CHUNK_SIZE) -> str:
    """Lowercase hex SHA-256 of a file's bytes.

    Raises:
        OSError: If the file cannot be opened or read.
    """
    digest = hashlib.sha256()
    async with aiofiles.open(file_path, "rb") as f:
        while chunk := await f.read(chunk_size):
            digest.update(chunk)
    return digest.hexdigest()


async def fingerprint_file(file_path: Path) -> FileFingerprint:
    """Size and SHA-256 of a file.

    Raises:
        OSError: If the file cannot be read.
    """
    stat = await aiofiles.os.stat(file_path)
    return FileFingerprint(
        sha256=await compute_file_hash(file_path),
        size_bytes=stat.st_size,
    )
