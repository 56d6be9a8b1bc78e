"""Administrative endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.logging import get_logger
from stocksync.db import get_db
from stocksync.db.models import (
    ImportedFile,
    KVEntry,
    LinkIssue,
    RemoteProduct,
    RemoteTask,
    StagingProduct,
    StagingStock,
)
from stocksync.schemas.admin import DatabaseResetResponse
from stocksync.workers.manager import WorkerManager, get_worker_manager

logger = get_logger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])

# Children before parents
RESET_ORDER = (
    StagingStock,
    StagingProduct,
    LinkIssue,
    ImportedFile,
    RemoteTask,
    RemoteProduct,
    KVEntry,
)


@router.post("/reset", response_model=DatabaseResetResponse)
async def reset_database(
    confirm: bool = Query(False, description="Must be true to wipe all data"),
    db: AsyncSession = Depends(get_db),
    manager: WorkerManager = Depends(get_worker_manager),
) -> DatabaseResetResponse:
    """Delete every row of every table in one transaction.

    The ledger, staging, the remote mirror, tasks, link issues and the sweep
    watermark all go, so the next poll re-imports every file and the cache
    sweeper primes the mirror from scratch. Running workers are restarted
    after the commit.
    """
    if not confirm:
        raise HTTPException(
            status_code=400,
            detail="Full reset deletes all data; repeat with confirm=true",
        )

    was_running = manager.is_running
    if was_running:
        await manager.stop()

    deleted: dict[str, int] = {}
    for model in RESET_ORDER:
        result = await db.execute(delete(model))
        deleted[model.__tablename__] = result.rowcount or 0
    await db.commit()

    logger.warning("database_reset", **deleted)

    if was_running:
        await manager.start()

    return DatabaseResetResponse(deleted=deleted, workers_restarted=was_running)
