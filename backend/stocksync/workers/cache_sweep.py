"""Worker that keeps the remote catalog mirror fresh."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stocksync.core.config import Settings
from stocksync.core.logging import get_logger
from stocksync.services.cache_sweeper import CacheSweeper
from stocksync.services.remote_catalog import RemoteCatalogClient
from stocksync.workers.base import PeriodicWorker

logger = get_logger(__name__)


class CacheSweepWorker(PeriodicWorker):
    """Optionally primes the mirror once, then sweeps incrementally per tick."""

    name = "remote_cache"

    def __init__(
        self,
        config: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        client: RemoteCatalogClient | None = None,
        **kwargs,
    ):
        """Initialize the worker.

        Args:
            config: Application settings.
            session_factory: Shared storage handle.
            client: Remote catalog client; built from config when omitted.
        """
        super().__init__(config, session_factory, **kwargs)
        self.client = client or RemoteCatalogClient.from_settings(config)
        self.sweeper = CacheSweeper(
            session_factory,
            self.client,
            lookback_hours=config.sweep_lookback_hours,
            cancel_event=self.cancel_event,
        )

    def interval_seconds(self) -> float:
        return float(self.config.sweep_interval_minutes * 60)

    async def on_start(self) -> None:
        if not self.config.remote_prime_on_start:
            return
        try:
            result = await self.sweeper.prime()
        except Exception as e:
            # The regular sweeps still run
            logger.error("cache_prime_failed", error=str(e), exc_info=True)
            return
        if not result.completed:
            logger.warning("cache_prime_incomplete", upserted=result.upserted, error=result.error)

    async def tick(self) -> None:
        await self.sweeper.sweep()

    async def on_stop(self) -> None:
        await self.client.close()
