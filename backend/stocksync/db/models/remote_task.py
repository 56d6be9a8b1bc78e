"""RemoteTask model - outbound write-back queue.

Schema only: write-back to the storefront is not implemented yet, nothing
enqueues or consumes these rows.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import DateTime, Enum, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from stocksync.db.base import Base
from stocksync.db.models.enums import RemoteTaskStatus


class RemoteTask(Base):
    """A pending change to push to the remote catalog."""

    __tablename__ = "remote_tasks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    import_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    kind: Mapped[str] = mapped_column(String(64), nullable=False, doc="e.g. product.update")
    payload_json: Mapped[str] = mapped_column(Text, default="{}")
    depends_on: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[RemoteTaskStatus] = mapped_column(
        Enum(RemoteTaskStatus), default=RemoteTaskStatus.PENDING
    )
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_remote_tasks_status", "status"),
        Index("ix_remote_tasks_import_id", "import_id"),
        Index("ix_remote_tasks_kind", "kind"),
    )
