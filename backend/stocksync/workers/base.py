"""Base class for periodic background workers."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from stocksync.core.config import Settings
from stocksync.core.logging import get_logger, log_context

logger = get_logger(__name__)


class PeriodicWorker(ABC):
    """Abstract base class for workers that run a tick on a fixed interval.

    Subclasses must implement:
    - interval_seconds(): the configured interval, read from self.config
    - tick(): one unit of work

    Features:
    - First tick runs immediately on start
    - Interval changes in the configuration are picked up after each tick
    - Graceful shutdown; the shutdown event doubles as the cancellation
      signal services check between files and pages
    - Unexpected tick errors are logged and the loop continues
    """

    name: str = "worker"

    def __init__(
        self,
        config: Settings,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        worker_id: str | None = None,
    ):
        """Initialize the worker.

        Args:
            config: Application settings; re-read after every tick.
            session_factory: Shared storage handle.
            worker_id: Optional identifier for this worker instance.
        """
        self.config = config
        self.session_factory = session_factory
        self.worker_id = worker_id or self.name

        self._running = False
        self._shutdown_event = asyncio.Event()
        self._active_interval: float = self.interval_seconds()
        self._ticks = 0
        self._failures = 0
        self._started_at: datetime | None = None
        self._last_tick_at: datetime | None = None

    @abstractmethod
    def interval_seconds(self) -> float:
        """Seconds between ticks, as currently configured."""
        pass

    @abstractmethod
    async def tick(self) -> None:
        """Perform one unit of work.

        Exceptions are caught and logged by run(); the next tick still runs.
        """
        pass

    async def on_start(self) -> None:
        """Hook executed once before the first tick."""
        pass

    async def on_stop(self) -> None:
        """Hook executed once after the loop exits."""
        pass

    @property
    def cancel_event(self) -> asyncio.Event:
        """Event set when shutdown was requested."""
        return self._shutdown_event

    async def run(self) -> None:
        """Main worker loop.

        Ticks until shutdown is requested.
        """
        self._running = True
        self._started_at = datetime.now(timezone.utc)

        logger.info(
            "worker_started",
            worker_id=self.worker_id,
            interval_seconds=self._active_interval,
        )

        try:
            await self.on_start()

            while self._running and not self._shutdown_event.is_set():
                await self._run_tick()
                self._refresh_interval()

                if self._shutdown_event.is_set():
                    break
                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self._active_interval,
                    )
                except TimeoutError:
                    pass
        finally:
            await self.on_stop()
            self._running = False
            logger.info(
                "worker_stopped",
                worker_id=self.worker_id,
                ticks=self._ticks,
                failures=self._failures,
                uptime_seconds=self._uptime_seconds(),
            )

    async def _run_tick(self) -> None:
        self._last_tick_at = datetime.now(timezone.utc)
        try:
            with log_context(worker_id=self.worker_id):
                await self.tick()
            self._ticks += 1
        except Exception as e:
            self._failures += 1
            logger.error(
                "worker_tick_error",
                worker_id=self.worker_id,
                error=str(e),
                exc_info=True,
            )

    def _refresh_interval(self) -> None:
        """Adopt a changed interval from the configuration."""
        configured = self.interval_seconds()
        if configured != self._active_interval:
            logger.info(
                "worker_interval_changed",
                worker_id=self.worker_id,
                old_seconds=self._active_interval,
                new_seconds=configured,
            )
            self._active_interval = configured

    def request_shutdown(self) -> None:
        """Request graceful shutdown of the worker."""
        logger.info("worker_shutdown_requested", worker_id=self.worker_id)
        self._running = False
        self._shutdown_event.set()

    def _uptime_seconds(self) -> int:
        if self._started_at:
            return int((datetime.now(timezone.utc) - self._started_at).total_seconds())
        return 0

    @property
    def active_interval(self) -> float:
        return self._active_interval

    @property
    def is_running(self) -> bool:
        """Check if worker is currently running."""
        return self._running

    @property
    def stats(self) -> dict[str, Any]:
        """Get worker statistics."""
        return {
            "worker_id": self.worker_id,
            "is_running": self._running,
            "interval_seconds": self._active_interval,
            "ticks": self._ticks,
            "failures": self._failures,
            "last_tick_at": self._last_tick_at.isoformat() if self._last_tick_at else None,
            "uptime_seconds": self._uptime_seconds(),
        }
