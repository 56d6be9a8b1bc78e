"""Pydantic schemas for the link issue API."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from stocksync.db.models.enums import LinkIssueReason


class LinkIssueResponse(BaseModel):
    """Schema for one reconciliation finding."""

    id: int
    product_id: int
    reason: LinkIssueReason
    code: str
    raw_code: str
    import_id: int | None = None
    remote_ids: list[int]
    details: str
    created_at: datetime
    updated_at: datetime


class LinkIssueListResponse(BaseModel):
    """Schema for paginated issue list."""

    items: list[LinkIssueResponse]
    total: int
    page: int
    page_size: int
    pages: int


class LinkIssueSummaryResponse(BaseModel):
    """Issue counts by reason."""

    total: int
    by_reason: dict[str, int]
