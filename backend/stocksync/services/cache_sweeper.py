"""Remote cache sweeper - keeps the local mirror of the remote catalog fresh.

Incremental sweeps page through the catalog newest-first and stop at the
first item that is not strictly newer than the persisted watermark. The
watermark only moves after a completed sweep that upserted something, and
then to the newest modification time seen rather than "now", so items
modified while the sweep was in flight are picked up next time.

Each page is committed on its own: cache freshness is best-effort, so a
failure on page N keeps the upserts of pages 1..N-1.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from pydantic import ValidationError
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stocksync.core.logging import get_logger
from stocksync.db.models import RemoteProduct
from stocksync.db.models.remote_product import MUTABLE_COLUMNS
from stocksync.schemas.remote import RemoteProductPayload
from stocksync.services.kv_store import KVStore
from stocksync.services.remote_catalog import (
    RemoteCatalogClient,
    RemoteCatalogError,
    RemoteCatalogHTTPError,
)
from stocksync.utils.timeparse import parse_remote_timestamp

logger = get_logger(__name__)

WATERMARK_KEY = "remote_cache_last_sweep"

# Safety stop for catalogs that keep returning full pages
MAX_PAGES = 10_000


@dataclass
class SweepResult:
    """Outcome of one sweep or prime run."""

    upserted: int = 0
    pages: int = 0
    skipped_items: int = 0
    since: datetime | None = None
    newest: datetime | None = None
    completed: bool = False
    error: str | None = None


class CacheSweeper:
    """Mirrors remote catalog items into remote_products."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        client: RemoteCatalogClient,
        *,
        lookback_hours: int = 24,
        cancel_event: asyncio.Event | None = None,
    ):
        """Initialize the sweeper.

        Args:
            session_factory: Shared storage handle.
            client: Remote catalog HTTP client.
            lookback_hours: Window used when no watermark exists yet.
            cancel_event: Set to stop between pages.
        """
        self.session_factory = session_factory
        self.client = client
        self.lookback_hours = lookback_hours
        self.cancel_event = cancel_event

    def _cancelled(self) -> bool:
        return self.cancel_event is not None and self.cancel_event.is_set()

    async def get_watermark(self) -> datetime | None:
        """Get the persisted watermark, if any."""
        async with self.session_factory() as db:
            return await KVStore(db).get_time(WATERMARK_KEY)

    async def sweep(self) -> SweepResult:
        """Run one incremental sweep."""
        since = await self.get_watermark()
        if since is None:
            since = datetime.now(timezone.utc) - timedelta(hours=self.lookback_hours)
            logger.info("cache_sweep_first_run", since=since.isoformat())

        result = SweepResult(since=since)
        page = 1

        while page <= MAX_PAGES:
            if self._cancelled():
                logger.info("cache_sweep_cancelled", page=page, upserted=result.upserted)
                return result

            items = await self._fetch(page, result)
            if items is None:
                return result
            result.pages += 1
            if not items:
                break

            rows: list[dict[str, Any]] = []
            reached_watermark = False
            for payload, modified_at in self._decode(items, result, require_timestamp=True):
                if modified_at <= since:
                    # Sorted descending: everything after this is already cached
                    reached_watermark = True
                    break
                if result.newest is None or modified_at > result.newest:
                    result.newest = modified_at
                rows.append(payload.to_row(modified_at))

            if rows and not await self._upsert(rows, page, result):
                return result
            result.upserted += len(rows)

            if reached_watermark or len(items) < self.client.per_page:
                break
            page += 1

        result.completed = True

        if result.upserted > 0 and result.newest is not None:
            try:
                async with self.session_factory() as db:
                    await KVStore(db).set_time(WATERMARK_KEY, result.newest)
                    await db.commit()
            except SQLAlchemyError as e:
                logger.error("cache_watermark_write_failed", error=str(e))
                result.error = str(e)
                return result
            logger.info(
                "cache_sweep_done",
                upserts=result.upserted,
                pages=result.pages,
                since=since.isoformat(),
                newest=result.newest.isoformat(),
            )
        else:
            logger.debug("cache_sweep_done_no_changes", since=since.isoformat())

        return result

    async def prime(self) -> SweepResult:
        """Page the entire catalog once, upserting every item.

        Used as a one-time bootstrap; ignores and never writes the watermark.
        """
        result = SweepResult()
        page = 1

        while page <= MAX_PAGES:
            if self._cancelled():
                logger.info("cache_prime_cancelled", page=page, upserted=result.upserted)
                return result

            items = await self._fetch(page, result)
            if items is None:
                return result
            result.pages += 1
            if not items:
                break

            rows = [
                payload.to_row(modified_at)
                for payload, modified_at in self._decode(items, result, require_timestamp=False)
            ]
            if rows and not await self._upsert(rows, page, result):
                return result
            result.upserted += len(rows)

            if len(items) < self.client.per_page:
                break
            page += 1

        result.completed = True
        logger.info("cache_primed", upserts=result.upserted, pages=result.pages)
        return result

    async def _fetch(self, page: int, result: SweepResult) -> list[dict[str, Any]] | None:
        """Fetch a page; None aborts the current run."""
        try:
            return await self.client.fetch_page(page)
        except RemoteCatalogHTTPError as e:
            logger.error("cache_sweep_http_error", page=page, status_code=e.status_code)
            result.error = str(e)
        except RemoteCatalogError as e:
            logger.error("cache_sweep_request_failed", page=page, error=str(e))
            result.error = str(e)
        return None

    def _decode(
        self,
        items: list[dict[str, Any]],
        result: SweepResult,
        *,
        require_timestamp: bool,
    ) -> list[tuple[RemoteProductPayload, datetime | None]]:
        """Validate items in page order, skipping the ones that cannot be used."""
        decoded: list[tuple[RemoteProductPayload, datetime | None]] = []
        for raw in items:
            try:
                payload = RemoteProductPayload.model_validate(raw)
            except ValidationError as e:
                result.skipped_items += 1
                logger.warning("cache_item_invalid", error=str(e), item_id=_item_id(raw))
                continue

            try:
                modified_at: datetime | None = parse_remote_timestamp(payload.date_modified_gmt)
            except ValueError:
                if require_timestamp:
                    result.skipped_items += 1
                    logger.warning(
                        "cache_item_bad_timestamp",
                        remote_id=payload.id,
                        date_modified_gmt=payload.date_modified_gmt,
                    )
                    continue
                modified_at = None

            decoded.append((payload, modified_at))
        return decoded

    async def _upsert(self, rows: list[dict[str, Any]], page: int, result: SweepResult) -> bool:
        """Insert or refresh mirror rows; identity and cross-reference are left alone."""
        stmt = sqlite_insert(RemoteProduct).values(rows)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RemoteProduct.remote_id],
            set_={column: stmt.excluded[column] for column in MUTABLE_COLUMNS},
        )
        try:
            async with self.session_factory() as db:
                await db.execute(stmt)
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("cache_upsert_failed", page=page, rows=len(rows), error=str(e))
            result.error = str(e)
            return False
        return True


def _item_id(raw: Any) -> Any:
    return raw.get("id") if isinstance(raw, dict) else None
