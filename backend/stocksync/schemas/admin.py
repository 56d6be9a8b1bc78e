"""Pydantic schemas for administrative operations."""

from __future__ import annotations

from pydantic import BaseModel


class DatabaseResetResponse(BaseModel):
    """Rows removed per table by a full reset."""

    deleted: dict[str, int]
    workers_restarted: bool = False
