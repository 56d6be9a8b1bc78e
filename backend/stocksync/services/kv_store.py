"""Key/value store for cursors and watermarks."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from stocksync.db.models import KVEntry
from stocksync.utils.timeparse import format_watermark, parse_watermark


class KVStore:
    """Reads and upserts singleton string values.

    Callers own the transaction: values written here are committed with the
    caller's session.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, key: str) -> str | None:
        """Get a raw value, or None when the key was never written."""
        result = await self.db.execute(select(KVEntry.value).where(KVEntry.key == key))
        return result.scalar_one_or_none()

    async def set(self, key: str, value: str) -> None:
        """Insert or overwrite a value."""
        stmt = sqlite_insert(KVEntry).values(
            key=key,
            value=value,
            updated_at=datetime.now(timezone.utc),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[KVEntry.key],
            set_={"value": stmt.excluded.value, "updated_at": stmt.excluded.updated_at},
        )
        await self.db.execute(stmt)

    async def get_time(self, key: str) -> datetime | None:
        """Get a timestamp value as an aware UTC datetime."""
        return parse_watermark(await self.get(key))

    async def set_time(self, key: str, value: datetime) -> None:
        """Store a timestamp as ISO-8601 UTC."""
        await self.set(key, format_watermark(value))
