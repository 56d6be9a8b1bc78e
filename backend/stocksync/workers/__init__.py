"""Background workers for stocksync."""

from stocksync.workers.base import PeriodicWorker
from stocksync.workers.cache_sweep import CacheSweepWorker
from stocksync.workers.import_watch import ImportWorker
from stocksync.workers.manager import (
    COMPONENT_FACTORIES,
    WorkerManager,
    get_worker_manager,
    start_workers,
    stop_workers,
)

__all__ = [
    # Base classes
    "PeriodicWorker",
    # Workers
    "CacheSweepWorker",
    "ImportWorker",
    # Manager
    "COMPONENT_FACTORIES",
    "WorkerManager",
    "get_worker_manager",
    "start_workers",
    "stop_workers",
]
