"""Import ledger API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.core.logging import get_logger
from stocksync.db import get_db
from stocksync.db.models import (
    ImportedFile,
    ImportStatus,
    LinkIssue,
    StagingProduct,
    StagingStock,
)
from stocksync.schemas.imports import (
    ImportedFileListResponse,
    ImportedFileResponse,
    ImportResetResponse,
)

logger = get_logger(__name__)

router = APIRouter(prefix="/imports", tags=["imports"])


@router.get("/", response_model=ImportedFileListResponse)
async def list_imports(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(20, ge=1, le=100, description="Items per page"),
    status: ImportStatus | None = Query(None, description="Filter by status"),
    db: AsyncSession = Depends(get_db),
) -> ImportedFileListResponse:
    """List registered export files, newest first."""
    query = select(ImportedFile)
    if status:
        query = query.where(ImportedFile.status == status)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * page_size
    query = query.order_by(ImportedFile.id.desc()).offset(offset).limit(page_size)
    files = (await db.execute(query)).scalars().all()

    # Staged product counts for the rows on this page
    staged: dict[int, int] = {}
    if files:
        counts = await db.execute(
            select(StagingProduct.import_id, func.count())
            .where(StagingProduct.import_id.in_([f.id for f in files]))
            .group_by(StagingProduct.import_id)
        )
        staged = {import_id: count for import_id, count in counts.all()}

    items = []
    for record in files:
        item = ImportedFileResponse.model_validate(record)
        item.staged_products = staged.get(record.id, 0)
        items.append(item)

    pages = (total + page_size - 1) // page_size if total > 0 else 1

    return ImportedFileListResponse(
        items=items,
        total=total,
        page=page,
        page_size=page_size,
        pages=pages,
    )


@router.get("/{import_id}", response_model=ImportedFileResponse)
async def get_import(
    import_id: int,
    db: AsyncSession = Depends(get_db),
) -> ImportedFileResponse:
    """Get one ledger row."""
    record = await db.get(ImportedFile, import_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Import not found")

    item = ImportedFileResponse.model_validate(record)
    item.staged_products = await db.scalar(
        select(func.count())
        .select_from(StagingProduct)
        .where(StagingProduct.import_id == import_id)
    ) or 0
    return item


@router.post("/{import_id}/reset", response_model=ImportResetResponse)
async def reset_import(
    import_id: int,
    db: AsyncSession = Depends(get_db),
) -> ImportResetResponse:
    """Forget a file so the next poll registers and imports it again.

    Deletes the ledger row, its staging rows and the link issues it raised.
    """
    record = await db.get(ImportedFile, import_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Import not found")

    filename = record.filename
    stock_result = await db.execute(
        delete(StagingStock).where(StagingStock.import_id == import_id)
    )
    product_result = await db.execute(
        delete(StagingProduct).where(StagingProduct.import_id == import_id)
    )
    issue_result = await db.execute(delete(LinkIssue).where(LinkIssue.import_id == import_id))
    await db.delete(record)
    await db.commit()

    logger.info(
        "import_reset",
        import_id=import_id,
        file=filename,
        staged_products_deleted=product_result.rowcount,
        staged_stock_deleted=stock_result.rowcount,
        link_issues_deleted=issue_result.rowcount,
    )

    return ImportResetResponse(
        id=import_id,
        filename=filename,
        staged_products_deleted=product_result.rowcount or 0,
        staged_stock_deleted=stock_result.rowcount or 0,
        link_issues_deleted=issue_result.rowcount or 0,
    )
