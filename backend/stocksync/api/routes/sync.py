"""Sync status endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.db import get_db
from stocksync.db.models import ImportedFile, ImportStatus, RemoteProduct
from stocksync.schemas.sync import SyncStatusResponse
from stocksync.services.cache_sweeper import WATERMARK_KEY
from stocksync.services.kv_store import KVStore
from stocksync.workers.manager import WorkerManager, get_worker_manager

router = APIRouter(prefix="/sync", tags=["sync"])


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(
    db: AsyncSession = Depends(get_db),
    manager: WorkerManager = Depends(get_worker_manager),
) -> SyncStatusResponse:
    """Get worker state, mirror size and the sweep watermark."""
    stats = manager.stats

    remote_products = await db.scalar(select(func.count()).select_from(RemoteProduct)) or 0
    status_counts = dict(
        (
            await db.execute(
                select(ImportedFile.status, func.count()).group_by(ImportedFile.status)
            )
        ).all()
    )

    return SyncStatusResponse(
        manager=stats["manager"],
        workers=stats["workers"],
        remote_products=remote_products,
        remote_watermark=await KVStore(db).get_time(WATERMARK_KEY),
        pending_imports=status_counts.get(ImportStatus.PENDING, 0),
        failed_imports=status_counts.get(ImportStatus.ERROR, 0),
    )
