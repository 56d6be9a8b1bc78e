"""Pydantic schemas for the import ledger API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from stocksync.db.models.enums import ImportStatus


class ImportedFileResponse(BaseModel):
    """Schema for one ledger row."""

    id: int
    filename: str
    captured_at: datetime | None = None
    transmission_id: str | None = None
    sha256: str
    size_bytes: int
    status: ImportStatus
    last_error: str | None = None
    received_at: datetime
    processed_at: datetime | None = None

    # Staging rows currently held for this import
    staged_products: int = 0

    model_config = {"from_attributes": True}


class ImportedFileListResponse(BaseModel):
    """Schema for paginated ledger list."""

    items: list[ImportedFileResponse]
    total: int
    page: int
    page_size: int
    pages: int


class ImportResetResponse(BaseModel):
    """Result of an administrative reset."""

    id: int
    filename: str
    staged_products_deleted: int
    staged_stock_deleted: int
    link_issues_deleted: int = 0
