"""Link issue API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.db import get_db
from stocksync.db.models import LinkIssue, LinkIssueReason
from stocksync.schemas.link_issue import (
    LinkIssueListResponse,
    LinkIssueResponse,
    LinkIssueSummaryResponse,
)

router = APIRouter(prefix="/link-issues", tags=["link-issues"])


def _to_response(issue: LinkIssue) -> LinkIssueResponse:
    return LinkIssueResponse(
        id=issue.id,
        product_id=issue.product_id,
        reason=issue.reason,
        code=issue.code,
        raw_code=issue.raw_code,
        import_id=issue.import_id,
        remote_ids=issue.remote_id_list,
        details=issue.details,
        created_at=issue.created_at,
        updated_at=issue.updated_at,
    )


@router.get("/", response_model=LinkIssueListResponse)
async def list_link_issues(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(50, ge=1, le=500, description="Items per page"),
    reason: LinkIssueReason | None = Query(None, description="Filter by reason"),
    product_id: int | None = Query(None, description="Filter by local product id"),
    db: AsyncSession = Depends(get_db),
) -> LinkIssueListResponse:
    """List reconciliation findings."""
    query = select(LinkIssue)
    if reason:
        query = query.where(LinkIssue.reason == reason)
    if product_id is not None:
        query = query.where(LinkIssue.product_id == product_id)

    count_query = select(func.count()).select_from(query.subquery())
    total = (await db.execute(count_query)).scalar() or 0

    offset = (page - 1) * page_size
    query = query.order_by(LinkIssue.reason, LinkIssue.code, LinkIssue.id).offset(offset).limit(page_size)
    issues = (await db.execute(query)).scalars().all()

    pages = (total + page_size - 1) // page_size if total > 0 else 1

    return LinkIssueListResponse(
        items=[_to_response(issue) for issue in issues],
        total=total,
        page=page,
        page_size=page_size,
        pages=pages,
    )


@router.get("/summary", response_model=LinkIssueSummaryResponse)
async def link_issue_summary(
    db: AsyncSession = Depends(get_db),
) -> LinkIssueSummaryResponse:
    """Count findings per reason (every reason is present, zero when absent)."""
    result = await db.execute(
        select(LinkIssue.reason, func.count()).group_by(LinkIssue.reason)
    )
    by_reason = {reason.value: 0 for reason in LinkIssueReason}
    for reason, count in result.all():
        by_reason[reason.value] = count

    return LinkIssueSummaryResponse(total=sum(by_reason.values()), by_reason=by_reason)
