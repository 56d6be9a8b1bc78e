"""Streaming import pipeline - export files into staging tables.

One poll cycle (ImportService.process_directory):
1. Scan the watch directory for exp_wyk_*.xml / .zip files
2. Register each file in the imported_files ledger (dedup)
3. Stream new or not-yet-done files into staging_products / staging_stock
4. Run the EAN linker for the freshly staged file
5. Mark the file DONE (or ERROR with the message, to retry next tick)

Staging for one file is rebuilt inside a single transaction: prior rows for
the import id are deleted first, so a reprocessed file never leaves residue
and a failed one never leaves partial rows.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterator
from concurrent.futures import ThreadPoolExecutor
from contextlib import ExitStack
from dataclasses import dataclass, field
from datetime import datetime, timezone
from itertools import islice
from pathlib import Path
from typing import Any

from sqlalchemy import delete, insert, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stocksync.core.logging import get_logger
from stocksync.db.models import ImportedFile, ImportStatus, StagingProduct, StagingStock
from stocksync.services.export_reader import (
    ExportEvent,
    ExportFormatError,
    iter_export,
    open_export,
)
from stocksync.services.linker import EanLinker, LinkerError, LinkResult, PurgeScope
from stocksync.services.registrar import FileRegistrar, RegistrarError, scan_directory

logger = get_logger(__name__)

DEFAULT_BATCH_SIZE = 500


@dataclass
class ImportResult:
    """Outcome of importing one file."""

    import_id: int
    success: bool = False
    products: int = 0
    stocks: int = 0
    skipped_products: int = 0
    transmission_id: str | None = None
    error: str | None = None
    link_result: LinkResult | None = None


@dataclass
class ImportCycleResult:
    """Outcome of one watch directory scan."""

    scanned: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    results: list[ImportResult] = field(default_factory=list)


class _StagingBatch:
    """Accumulates staging rows and flushes them as multi-row inserts."""

    def __init__(self, db: AsyncSession, batch_size: int):
        self.db = db
        self.batch_size = batch_size
        self.products: list[dict[str, Any]] = []
        self.stocks: list[dict[str, Any]] = []
        self.products_inserted = 0
        self.stocks_inserted = 0

    @property
    def full(self) -> bool:
        return len(self.products) >= self.batch_size or len(self.stocks) >= self.batch_size

    async def flush(self) -> None:
        if self.products:
            await self.db.execute(insert(StagingProduct).values(self.products))
            self.products_inserted += len(self.products)
            self.products = []
        if self.stocks:
            await self.db.execute(insert(StagingStock).values(self.stocks))
            self.stocks_inserted += len(self.stocks)
            self.stocks = []


class _ExportCursor:
    """Reads and parses an export on its own thread, a slice of events at a time.

    The file handle and the lxml parser are created, advanced and closed on
    the same single worker thread; the event loop only awaits each slice.
    """

    def __init__(self, path: Path):
        self.path = path
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="export-parse")
        self._stack = ExitStack()
        self._events: Iterator[ExportEvent] | None = None

    def _take(self, limit: int) -> list[ExportEvent]:
        if self._events is None:
            stream = self._stack.enter_context(open_export(self.path))
            self._events = iter_export(stream)
        return list(islice(self._events, limit))

    def _close(self) -> None:
        if self._events is not None:
            self._events.close()
        self._stack.close()

    async def next_events(self, limit: int) -> list[ExportEvent]:
        """Next slice of events; empty once the document is exhausted."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self._take, limit)

    async def close(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(self._executor, self._close)
        finally:
            self._executor.shutdown(wait=False)


class ImportPipeline:
    """Parses one registered export file into staging and links it."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        batch_size: int = DEFAULT_BATCH_SIZE,
        purge_scope: PurgeScope = "global",
    ):
        """Initialize the pipeline.

        Args:
            session_factory: Shared storage handle.
            batch_size: Rows per multi-row staging insert.
            purge_scope: Link issue purge scope handed to the linker.
        """
        self.session_factory = session_factory
        self.batch_size = batch_size
        self.purge_scope = purge_scope

    async def import_file(self, import_id: int, path: Path) -> ImportResult:
        """Stage, link and finalize one file.

        Never raises for data, parse or storage problems: the file is marked
        ERROR with the message and the failed result is returned.
        """
        result = ImportResult(import_id=import_id)

        async with self.session_factory() as db:
            try:
                await self._stage(db, import_id, path, result)
                await db.commit()
            except (ExportFormatError, OSError, SQLAlchemyError) as e:
                await db.rollback()
                result.error = str(e)
                logger.error(
                    "import_file_failed",
                    file=path.name,
                    import_id=import_id,
                    error=str(e),
                )
                await self._mark_error(import_id, str(e))
                return result

        logger.info(
            "import_file_staged",
            file=path.name,
            import_id=import_id,
            products_inserted=result.products,
            stocks_inserted=result.stocks,
            products_skipped=result.skipped_products,
        )

        try:
            async with self.session_factory() as db:
                linker = EanLinker(db, purge_scope=self.purge_scope)
                result.link_result = await linker.link(import_id)
        except LinkerError as e:
            # Staging stays committed; the whole file is retried next tick
            result.error = str(e)
            await self._mark_error(import_id, str(e))
            return result

        await self._mark_done(import_id)
        result.success = True
        logger.info("import_file_done", file=path.name, import_id=import_id)
        return result

    async def _stage(
        self,
        db: AsyncSession,
        import_id: int,
        path: Path,
        result: ImportResult,
    ) -> None:
        """Replace the staging rows of an import with the file's content."""
        await db.execute(delete(StagingStock).where(StagingStock.import_id == import_id))
        await db.execute(delete(StagingProduct).where(StagingProduct.import_id == import_id))

        batch = _StagingBatch(db, self.batch_size)
        cursor = _ExportCursor(path)

        try:
            while True:
                events = await cursor.next_events(self.batch_size)
                if not events:
                    break
                for event in events:
                    if event.kind == "transmission_id":
                        if event.transmission_id and result.transmission_id is None:
                            result.transmission_id = event.transmission_id
                            await self._store_transmission_id(
                                db, import_id, event.transmission_id
                            )
                        continue

                    product = event.product
                    if product is None:
                        continue
                    if product.product_id <= 0:
                        result.skipped_products += 1
                        logger.warning(
                            "import_product_without_id",
                            import_id=import_id,
                            code=product.code,
                        )
                        continue

                    batch.products.append(product.as_row(import_id))
                    batch.stocks.extend(product.stock_rows(import_id))
                    if batch.full:
                        await batch.flush()
        finally:
            await cursor.close()

        await batch.flush()
        result.products = batch.products_inserted
        result.stocks = batch.stocks_inserted

    async def _store_transmission_id(
        self, db: AsyncSession, import_id: int, transmission_id: str
    ) -> None:
        """Persist the transmission id unless the ledger row already has one."""
        await db.execute(
            update(ImportedFile)
            .where(
                ImportedFile.id == import_id,
                ImportedFile.transmission_id.is_(None),
            )
            .values(transmission_id=transmission_id)
        )

    async def _mark_error(self, import_id: int, error: str) -> None:
        try:
            async with self.session_factory() as db:
                await db.execute(
                    update(ImportedFile)
                    .where(ImportedFile.id == import_id)
                    .values(status=ImportStatus.ERROR, last_error=error)
                )
                await db.commit()
        except SQLAlchemyError as e:
            logger.error("import_status_update_failed", import_id=import_id, error=str(e))

    async def _mark_done(self, import_id: int) -> None:
        try:
            async with self.session_factory() as db:
                await db.execute(
                    update(ImportedFile)
                    .where(ImportedFile.id == import_id)
                    .values(
                        status=ImportStatus.DONE,
                        last_error=None,
                        processed_at=datetime.now(timezone.utc),
                    )
                )
                await db.commit()
        except SQLAlchemyError as e:
            # Stays PENDING/ERROR and is reprocessed next tick
            logger.error("import_status_update_failed", import_id=import_id, error=str(e))


class ImportService:
    """Runs one import cycle over the watch directory."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        prefix: str = "exp_wyk_",
        batch_size: int = DEFAULT_BATCH_SIZE,
        purge_scope: PurgeScope = "global",
        cancel_event: asyncio.Event | None = None,
    ):
        self.session_factory = session_factory
        self.prefix = prefix
        self.cancel_event = cancel_event
        self.pipeline = ImportPipeline(
            session_factory,
            batch_size=batch_size,
            purge_scope=purge_scope,
        )

    async def process_directory(self, directory: Path) -> ImportCycleResult:
        """Register and import every eligible export file in a directory.

        Files are processed sequentially in name order. Cancellation is
        checked between files; a file in flight always completes.
        """
        cycle = ImportCycleResult()

        try:
            paths = scan_directory(directory, self.prefix)
        except OSError as e:
            logger.error("watch_dir_unreadable", dir=str(directory), error=str(e))
            return cycle

        cycle.scanned = len(paths)

        for path in paths:
            if self.cancel_event is not None and self.cancel_event.is_set():
                logger.info("import_cycle_cancelled", remaining=cycle.scanned - cycle.processed)
                break

            try:
                async with self.session_factory() as db:
                    registered = await FileRegistrar(db, prefix=self.prefix).register(path)
                    await db.commit()
            except (RegistrarError, SQLAlchemyError) as e:
                logger.error("import_file_registration_failed", file=path.name, error=str(e))
                cycle.failed += 1
                continue
            except Exception as e:
                # Files sorted after a broken one still get their turn
                logger.exception("import_file_registration_crashed", file=path.name, error=str(e))
                cycle.failed += 1
                continue

            if not registered.needs_processing:
                logger.debug("import_file_already_done", file=path.name)
                cycle.skipped += 1
                continue

            if registered.already:
                logger.warning(
                    "import_file_retry",
                    file=path.name,
                    import_id=registered.import_id,
                    status=registered.status.value,
                )

            result = await self.pipeline.import_file(registered.import_id, path)
            cycle.results.append(result)
            cycle.processed += 1
            if not result.success:
                cycle.failed += 1

        if cycle.processed or cycle.failed:
            logger.info(
                "import_cycle_done",
                dir=str(directory),
                scanned=cycle.scanned,
                processed=cycle.processed,
                failed=cycle.failed,
                skipped=cycle.skipped,
            )
        return cycle
