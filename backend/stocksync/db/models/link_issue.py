"""LinkIssue model - persisted reconciliation findings."""

from __future__ import annotations

import json
from datetime import datetime, timezone

from sqlalchemy import BigInteger, DateTime, Enum, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from stocksync.db.base import Base
from stocksync.db.models.enums import LinkIssueReason


class LinkIssue(Base):
    """One discrepancy between the local export and the remote mirror.

    The (product_id, reason, code) triple is unique so re-detecting the same
    problem refreshes the row in place. code holds the normalized EAN (empty
    for missing_ean_src); product_id is 0 for items that exist only remotely.
    """

    __tablename__ = "link_issues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    product_id: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    reason: Mapped[LinkIssueReason] = mapped_column(
        Enum(
            LinkIssueReason,
            values_callable=lambda reasons: [r.value for r in reasons],
            name="link_issue_reason",
        ),
        nullable=False,
    )
    code: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    # Linker run that last derived this issue
    import_id: Mapped[int | None] = mapped_column(Integer, nullable=True)

    raw_code: Mapped[str] = mapped_column(String(128), default="")
    remote_ids: Mapped[str] = mapped_column(Text, default="[]", doc="JSON list of remote ids")
    details: Mapped[str] = mapped_column(Text, default="")

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        UniqueConstraint("product_id", "reason", "code", name="uq_link_issue"),
        Index("ix_link_issues_reason", "reason"),
        Index("ix_link_issues_import_id", "import_id"),
    )

    @property
    def remote_id_list(self) -> list[int]:
        """Decoded list of remote ids involved."""
        try:
            return [int(v) for v in json.loads(self.remote_ids or "[]")]
        except (TypeError, ValueError):
            return []
