"""Worker that polls the watch directory for export files."""

from __future__ import annotations

from pathlib import Path

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stocksync.core.config import Settings
from stocksync.core.logging import get_logger
from stocksync.services.importer import ImportService
from stocksync.workers.base import PeriodicWorker

logger = get_logger(__name__)


class ImportWorker(PeriodicWorker):
    """Runs one import cycle per tick."""

    name = "importer"

    def __init__(
        self,
        config: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        **kwargs,
    ):
        super().__init__(config, session_factory, **kwargs)
        self.service = ImportService(
            session_factory,
            prefix=config.import_file_prefix,
            batch_size=config.import_batch_size,
            purge_scope=config.linker_purge_scope,
            cancel_event=self.cancel_event,
        )

    def interval_seconds(self) -> float:
        return float(self.config.import_poll_seconds)

    async def tick(self) -> None:
        await self.service.process_directory(Path(self.config.watch_dir))
