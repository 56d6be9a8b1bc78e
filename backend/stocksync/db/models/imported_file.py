"""ImportedFile model - the append-only ledger of export files."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stocksync.db.base import Base
from stocksync.db.models.enums import ImportStatus


class ImportedFile(Base):
    """One distinct export file seen in the watch directory.

    Used for:
    - Duplicate detection (same bytes, same name or same transmission id)
    - Retry of files whose last processing attempt failed
    - Import history and audit trail

    Each of filename, sha256 and transmission_id is an independent dedup key.
    Empty transmission ids are stored as NULL so they never collide.
    """

    __tablename__ = "imported_files"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # File identification
    filename: Mapped[str] = mapped_column(String(512), nullable=False, unique=True)
    captured_at: Mapped[datetime | None] = mapped_column(
        DateTime, nullable=True, doc="Capture time parsed from the filename"
    )
    transmission_id: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True, doc="transmisja_id from the document"
    )
    sha256: Mapped[str] = mapped_column(
        String(64), nullable=False, unique=True, doc="SHA-256 of the file bytes"
    )
    size_bytes: Mapped[int] = mapped_column(BigInteger, default=0)

    # Processing status
    status: Mapped[ImportStatus] = mapped_column(
        Enum(ImportStatus), default=ImportStatus.PENDING
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Timestamps
    received_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("ix_imported_files_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<ImportedFile {self.id} {self.filename} {self.status.value}>"
