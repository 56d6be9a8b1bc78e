"""File registrar - assigns each distinct export file a durable identity.

A file is the same logical export as an existing ledger row when any of its
content hash, filename or (non-empty) transmission id matches. Registration
never contacts the remote catalog; it inserts at most one row.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.logging import get_logger
from stocksync.db.models import ImportedFile, ImportStatus
from stocksync.services.export_reader import (
    ExportFormatError,
    is_export_filename,
    read_transmission_id,
)
from stocksync.utils.file_hash import fingerprint_file
from stocksync.utils.timeparse import capture_time_from_filename

logger = get_logger(__name__)


class RegistrarError(Exception):
    """Raised when a file cannot be registered."""

    pass


def scan_directory(directory: Path, prefix: str = "exp_wyk_") -> list[Path]:
    """List export files in a directory, sorted by name.

    Raises:
        OSError: If the directory cannot be read.
    """
    return sorted(
        entry
        for entry in directory.iterdir()
        if entry.is_file() and is_export_filename(entry.name, prefix)
    )


@dataclass
class RegisteredFile:
    """Outcome of registering one file."""

    import_id: int
    path: Path
    already: bool
    status: ImportStatus

    @property
    def needs_processing(self) -> bool:
        """New files and files whose last attempt did not finish are processed.

        Dedup only protects against repeating successful work.
        """
        return not self.already or self.status != ImportStatus.DONE


class FileRegistrar:
    """Scans the watch directory and registers export files."""

    def __init__(self, db: AsyncSession, *, prefix: str = "exp_wyk_"):
        """Initialize the registrar.

        Args:
            db: AsyncSession for database operations.
            prefix: Filename prefix of export files.
        """
        self.db = db
        self.prefix = prefix

    def scan(self, directory: Path) -> list[Path]:
        """List export files in a directory, sorted by name."""
        return scan_directory(directory, self.prefix)

    async def register(self, path: Path) -> RegisteredFile:
        """Register a file, returning the existing identity when already known.

        Raises:
            RegistrarError: If the file cannot be read.
        """
        try:
            fingerprint = await fingerprint_file(path)
        except OSError as e:
            raise RegistrarError(f"Cannot read {path.name}: {e}") from e

        transmission_id = await self._peek_transmission_id(path)

        existing = await self.find_existing(fingerprint.sha256, path.name, transmission_id)
        if existing is not None:
            logger.debug(
                "import_file_known",
                file=path.name,
                import_id=existing.id,
                status=existing.status.value,
            )
            return RegisteredFile(
                import_id=existing.id,
                path=path,
                already=True,
                status=existing.status,
            )

        record = ImportedFile(
            filename=path.name,
            captured_at=capture_time_from_filename(path.name),
            transmission_id=transmission_id or None,
            sha256=fingerprint.sha256,
            size_bytes=fingerprint.size_bytes,
            status=ImportStatus.PENDING,
        )
        self.db.add(record)
        await self.db.flush()

        logger.info(
            "import_file_registered",
            file=path.name,
            import_id=record.id,
            size_bytes=fingerprint.size_bytes,
            transmission_id=transmission_id or None,
        )
        return RegisteredFile(
            import_id=record.id,
            path=path,
            already=False,
            status=ImportStatus.PENDING,
        )

    async def find_existing(
        self, file_hash: str, filename: str, transmission_id: str = ""
    ) -> ImportedFile | None:
        """Find a ledger row matching any of the three dedup keys."""
        conditions = [
            ImportedFile.sha256 == file_hash,
            ImportedFile.filename == filename,
        ]
        if transmission_id:
            conditions.append(ImportedFile.transmission_id == transmission_id)

        result = await self.db.execute(
            select(ImportedFile)
            .where(or_(*conditions))
            .order_by(ImportedFile.id)
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def _peek_transmission_id(self, path: Path) -> str:
        """Read the transmission id off the event loop; "" when unavailable."""
        loop = asyncio.get_running_loop()
        try:
            return await loop.run_in_executor(None, read_transmission_id, path)
        except (ExportFormatError, OSError) as e:
            # The import itself will report the broken document
            logger.warning(
                "transmission_id_peek_failed",
                file=path.name,
                error=str(e),
            )
            return ""
