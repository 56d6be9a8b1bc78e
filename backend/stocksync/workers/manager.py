"""Worker manager for orchestrating the periodic components."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stocksync.core.config import Settings, settings
from stocksync.core.logging import get_logger
from stocksync.db.session import get_session_maker
from stocksync.workers.base import PeriodicWorker
from stocksync.workers.cache_sweep import CacheSweepWorker
from stocksync.workers.import_watch import ImportWorker

logger = get_logger(__name__)

WorkerFactory = Callable[[Settings, async_sessionmaker[AsyncSession]], PeriodicWorker | None]

# Seconds to wait for workers to finish their current tick on shutdown
SHUTDOWN_TIMEOUT = 30.0


def _build_importer(
    config: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> PeriodicWorker | None:
    return ImportWorker(config, session_factory)


def _build_remote_cache(
    config: Settings, session_factory: async_sessionmaker[AsyncSession]
) -> PeriodicWorker | None:
    if config.sweep_interval_minutes <= 0:
        logger.info("remote_cache_disabled", reason="sweep_interval_minutes <= 0")
        return None
    if not config.remote_configured:
        logger.warning("remote_cache_disabled", reason="remote catalog credentials not set")
        return None
    return CacheSweepWorker(config, session_factory)


COMPONENT_FACTORIES: dict[str, WorkerFactory] = {
    "importer": _build_importer,
    "remote_cache": _build_remote_cache,
}


class WorkerManager:
    """Builds the enabled components and runs each in its own task.

    Manages the lifecycle of workers, including:
    - Starting workers in their own tasks
    - Graceful shutdown with a timeout, then cancellation
    - Reloading with new settings
    - Statistics
    """

    def __init__(
        self,
        config: Settings | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        *,
        factories: dict[str, WorkerFactory] | None = None,
    ):
        """Initialize the worker manager.

        Args:
            config: Application settings (defaults to the global settings).
            session_factory: Shared storage handle (defaults to the app's).
            factories: Component id to factory map (defaults to COMPONENT_FACTORIES).
        """
        self.config = config or settings
        self.session_factory = session_factory or get_session_maker()
        self.factories = factories if factories is not None else COMPONENT_FACTORIES

        self._workers: list[PeriodicWorker] = []
        self._worker_tasks: list[asyncio.Task] = []
        self._running = False
        self._started_at: datetime | None = None

    def build_workers(self) -> list[PeriodicWorker]:
        """Instantiate a worker for every enabled component."""
        workers: list[PeriodicWorker] = []
        for component in self.config.enabled_components:
            factory = self.factories.get(component)
            if factory is None:
                logger.warning("unknown_component", component=component)
                continue
            worker = factory(self.config, self.session_factory)
            if worker is None:
                continue
            workers.append(worker)
            logger.info("worker_registered", worker_id=worker.worker_id, component=component)
        return workers

    async def start(self) -> None:
        """Start all enabled workers as background tasks."""
        if self._running:
            logger.warning("worker_manager_already_running")
            return

        self._workers = self.build_workers()
        self._running = True
        self._started_at = datetime.now(timezone.utc)

        for worker in self._workers:
            task = asyncio.create_task(worker.run(), name=f"worker-{worker.worker_id}")
            self._worker_tasks.append(task)

        logger.info("worker_manager_started", worker_count=len(self._workers))

    async def stop(self) -> None:
        """Request shutdown of all workers and wait for them to finish."""
        if not self._running:
            return

        logger.info("worker_manager_stopping")
        self._running = False

        for worker in self._workers:
            worker.request_shutdown()

        if self._worker_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._worker_tasks, return_exceptions=True),
                    timeout=SHUTDOWN_TIMEOUT,
                )
            except asyncio.TimeoutError:
                pending = [t for t in self._worker_tasks if not t.done()]
                logger.warning("worker_shutdown_timeout", pending_workers=len(pending))
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        self._worker_tasks = []
        logger.info("worker_manager_shutdown_complete")

    async def reload(self, config: Settings) -> None:
        """Swap settings, restarting the workers if they were running."""
        was_running = self._running
        await self.stop()
        self.config = config
        logger.info("worker_manager_reloaded", enabled_components=config.enabled_components)
        if was_running:
            await self.start()

    def _uptime_seconds(self) -> int:
        if self._started_at and self._running:
            return int((datetime.now(timezone.utc) - self._started_at).total_seconds())
        return 0

    @property
    def is_running(self) -> bool:
        """Check if manager is running."""
        return self._running

    @property
    def workers(self) -> list[PeriodicWorker]:
        return list(self._workers)

    @property
    def stats(self) -> dict[str, Any]:
        """Get statistics about the manager and all workers."""
        return {
            "manager": {
                "running": self._running,
                "worker_count": len(self._workers),
                "enabled_components": list(self.config.enabled_components),
                "uptime_seconds": self._uptime_seconds(),
            },
            "workers": [w.stats for w in self._workers],
        }


# Global worker manager instance
_manager: WorkerManager | None = None


def get_worker_manager() -> WorkerManager:
    """Get the global worker manager instance.

    Creates a new instance if one doesn't exist.
    """
    global _manager
    if _manager is None:
        _manager = WorkerManager()
    return _manager


async def start_workers() -> WorkerManager:
    """Start the global worker manager (application startup)."""
    manager = get_worker_manager()
    await manager.start()
    return manager


async def stop_workers() -> None:
    """Stop the global worker manager (application shutdown)."""
    global _manager
    if _manager is not None:
        await _manager.stop()
        _manager = None
