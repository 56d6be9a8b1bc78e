"""Pydantic schemas for the sync status API."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel


class ManagerStats(BaseModel):
    running: bool
    worker_count: int
    enabled_components: list[str]
    uptime_seconds: int


class SyncStatusResponse(BaseModel):
    """Manager and worker state plus mirror freshness."""

    manager: ManagerStats
    workers: list[dict[str, Any]]
    remote_products: int
    remote_watermark: datetime | None = None
    pending_imports: int
    failed_imports: int
