"""Tests for the periodic workers and the worker manager."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from sqlalchemy import func, select

from stocksync.core.config import Settings
from stocksync.db.models import ImportedFile, ImportStatus, RemoteProduct
from stocksync.services.remote_catalog import RemoteCatalogClient
from stocksync.workers import (
    COMPONENT_FACTORIES,
    CacheSweepWorker,
    ImportWorker,
    PeriodicWorker,
    WorkerManager,
)

from factories import build_export, product_xml, seed_remote, write_export


class FakeWorker(PeriodicWorker):
    """Worker whose interval and tick behaviour are driven by the test."""

    name = "fake"

    def __init__(self, config, session_factory=None, *, interval=0.01, fail_first=0, **kwargs):
        self.interval = interval
        self.fail_first = fail_first
        self.calls = 0
        self.started = False
        self.stopped = False
        super().__init__(config, session_factory, **kwargs)

    def interval_seconds(self) -> float:
        return self.interval

    async def tick(self) -> None:
        self.calls += 1
        if self.calls <= self.fail_first:
            raise RuntimeError(f"tick {self.calls} failed")

    async def on_start(self) -> None:
        self.started = True

    async def on_stop(self) -> None:
        self.stopped = True


async def wait_until(predicate, timeout=2.0):
    """Poll until predicate() is true or fail."""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


def remote_settings(**overrides) -> Settings:
    values = {
        "remote_consumer_key": "ck",
        "remote_consumer_secret": "cs",
        "remote_base_url": "https://shop.example.com",
        "sweep_interval_minutes": 60,
    }
    values.update(overrides)
    return Settings(**values)


# =============================================================================
# PeriodicWorker
# =============================================================================


class TestPeriodicWorker:
    """Tests for the PeriodicWorker loop."""

    @pytest.mark.asyncio
    async def test_ticks_until_shutdown(self):
        worker = FakeWorker(Settings())
        task = asyncio.create_task(worker.run())

        await wait_until(lambda: worker.calls >= 3)
        worker.request_shutdown()
        await asyncio.wait_for(task, timeout=1)

        assert worker.started is True
        assert worker.stopped is True
        assert worker.is_running is False
        assert worker.stats["ticks"] == worker.calls

    @pytest.mark.asyncio
    async def test_first_tick_runs_immediately(self):
        worker = FakeWorker(Settings(), interval=60)
        task = asyncio.create_task(worker.run())

        await wait_until(lambda: worker.calls == 1)
        worker.request_shutdown()
        # Shutdown interrupts the 60 second wait
        await asyncio.wait_for(task, timeout=1)

        assert worker.calls == 1

    @pytest.mark.asyncio
    async def test_tick_errors_do_not_stop_the_loop(self):
        worker = FakeWorker(Settings(), fail_first=2)
        task = asyncio.create_task(worker.run())

        await wait_until(lambda: worker.calls >= 4)
        worker.request_shutdown()
        await asyncio.wait_for(task, timeout=1)

        stats = worker.stats
        assert stats["failures"] == 2
        assert stats["ticks"] == worker.calls - 2
        assert stats["last_tick_at"] is not None

    @pytest.mark.asyncio
    async def test_interval_change_is_adopted_after_tick(self):
        worker = FakeWorker(Settings(), interval=0.01)
        task = asyncio.create_task(worker.run())

        await wait_until(lambda: worker.calls >= 1)
        worker.interval = 0.02
        await wait_until(lambda: worker.active_interval == 0.02)
        worker.request_shutdown()
        await asyncio.wait_for(task, timeout=1)

        assert worker.stats["interval_seconds"] == 0.02

    def test_cancel_event_is_shutdown_signal(self):
        worker = FakeWorker(Settings())

        assert not worker.cancel_event.is_set()
        worker.request_shutdown()
        assert worker.cancel_event.is_set()

    def test_worker_id_defaults_to_name(self):
        assert FakeWorker(Settings()).worker_id == "fake"
        assert FakeWorker(Settings(), worker_id="fake-2").worker_id == "fake-2"


# =============================================================================
# Concrete workers
# =============================================================================


class TestImportWorker:
    """Tests for ImportWorker."""

    def test_interval_from_config(self, session_factory):
        worker = ImportWorker(Settings(import_poll_seconds=15), session_factory)

        assert worker.interval_seconds() == 15.0

    @pytest.mark.asyncio
    async def test_tick_processes_watch_dir(self, session_factory, watch_dir):
        await seed_remote(session_factory, [(100, "1")])
        write_export(watch_dir, "exp_wyk_1.xml", build_export([product_xml(1, "1")]))
        worker = ImportWorker(Settings(watch_dir=watch_dir), session_factory)

        await worker.tick()

        async with session_factory() as db:
            record = (await db.execute(select(ImportedFile))).scalar_one()
        assert record.status == ImportStatus.DONE

    @pytest.mark.asyncio
    async def test_shutdown_cancels_import_cycle(self, session_factory, watch_dir):
        write_export(watch_dir, "exp_wyk_1.xml", build_export([product_xml(1, "1")]))
        worker = ImportWorker(Settings(watch_dir=watch_dir), session_factory)
        worker.request_shutdown()

        await worker.tick()

        async with session_factory() as db:
            assert await db.scalar(select(func.count()).select_from(ImportedFile)) == 0


class TestCacheSweepWorker:
    """Tests for CacheSweepWorker."""

    @staticmethod
    def client(items) -> RemoteCatalogClient:
        def handler(request):
            page = int(request.url.params["page"])
            return httpx.Response(200, json=items if page == 1 else [])

        return RemoteCatalogClient(
            "https://shop.example.com", "ck", "cs", transport=httpx.MockTransport(handler)
        )

    def test_interval_in_seconds(self, session_factory):
        worker = CacheSweepWorker(remote_settings(sweep_interval_minutes=5), session_factory)

        assert worker.interval_seconds() == 300.0

    @pytest.mark.asyncio
    async def test_prime_on_start_then_sweep(self, session_factory):
        modified = (datetime.now(timezone.utc) - timedelta(minutes=5)).strftime("%Y-%m-%dT%H:%M:%S")
        items = [
            {"id": 1, "ean": "1", "date_modified_gmt": modified},
            {"id": 2, "ean": "2", "date_modified_gmt": ""},
        ]
        worker = CacheSweepWorker(
            remote_settings(remote_prime_on_start=True),
            session_factory,
            client=self.client(items),
        )

        await worker.on_start()
        async with session_factory() as db:
            assert await db.scalar(select(func.count()).select_from(RemoteProduct)) == 2

        # The sweep skips the item without a timestamp but keeps going
        await worker.tick()
        await worker.on_stop()

    @pytest.mark.asyncio
    async def test_prime_failure_is_logged_not_raised(self, session_factory):
        def handler(request):
            return httpx.Response(503)

        client = RemoteCatalogClient(
            "https://shop.example.com", "ck", "cs", transport=httpx.MockTransport(handler)
        )
        worker = CacheSweepWorker(
            remote_settings(remote_prime_on_start=True), session_factory, client=client
        )

        await worker.on_start()
        await worker.on_stop()


# =============================================================================
# Component factories
# =============================================================================


class TestComponentFactories:
    """Tests for COMPONENT_FACTORIES."""

    def test_known_components(self):
        assert set(COMPONENT_FACTORIES) == {"importer", "remote_cache"}

    def test_importer(self, session_factory):
        worker = COMPONENT_FACTORIES["importer"](Settings(), session_factory)

        assert isinstance(worker, ImportWorker)

    def test_remote_cache_configured(self, session_factory):
        worker = COMPONENT_FACTORIES["remote_cache"](remote_settings(), session_factory)

        assert isinstance(worker, CacheSweepWorker)

    @pytest.mark.parametrize(
        "overrides",
        [
            {"sweep_interval_minutes": 0},
            {"sweep_interval_minutes": -1},
            {"remote_consumer_key": ""},
            {"remote_consumer_secret": ""},
        ],
    )
    def test_remote_cache_disabled(self, session_factory, overrides):
        assert COMPONENT_FACTORIES["remote_cache"](remote_settings(**overrides), session_factory) is None


# =============================================================================
# WorkerManager
# =============================================================================


class TestWorkerManager:
    """Tests for WorkerManager."""

    @staticmethod
    def manager(components, session_factory, **kwargs) -> WorkerManager:
        factories = {
            "a": lambda config, sf: FakeWorker(config, sf, worker_id="a"),
            "b": lambda config, sf: FakeWorker(config, sf, worker_id="b"),
            "off": lambda config, sf: None,
        }
        return WorkerManager(
            Settings(enabled_components=components, **kwargs),
            session_factory,
            factories=factories,
        )

    def test_build_skips_unknown_and_disabled(self, session_factory):
        manager = self.manager(["a", "off", "nope", "b"], session_factory)

        assert [w.worker_id for w in manager.build_workers()] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_start_and_stop(self, session_factory):
        manager = self.manager(["a", "b"], session_factory)

        await manager.start()
        assert manager.is_running is True
        await wait_until(lambda: all(w.calls >= 1 for w in manager.workers))

        await manager.stop()

        assert manager.is_running is False
        assert all(w.stopped for w in manager.workers)

    @pytest.mark.asyncio
    async def test_start_twice_is_noop(self, session_factory):
        manager = self.manager(["a"], session_factory)

        await manager.start()
        first = manager.workers
        await manager.start()

        assert manager.workers == first
        await manager.stop()

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self, session_factory):
        await self.manager(["a"], session_factory).stop()

    @pytest.mark.asyncio
    async def test_stats(self, session_factory):
        manager = self.manager(["a", "b"], session_factory)
        await manager.start()
        await wait_until(lambda: all(w.calls >= 1 for w in manager.workers))

        stats = manager.stats

        assert stats["manager"]["running"] is True
        assert stats["manager"]["worker_count"] == 2
        assert stats["manager"]["enabled_components"] == ["a", "b"]
        assert [w["worker_id"] for w in stats["workers"]] == ["a", "b"]
        await manager.stop()

    @pytest.mark.asyncio
    async def test_reload_restarts_with_new_components(self, session_factory):
        manager = self.manager(["a", "b"], session_factory)
        await manager.start()
        old = manager.workers

        await manager.reload(Settings(enabled_components=["b"]))

        assert manager.is_running is True
        assert [w.worker_id for w in manager.workers] == ["b"]
        assert all(w.stopped for w in old)
        await manager.stop()

    @pytest.mark.asyncio
    async def test_reload_while_stopped_does_not_start(self, session_factory):
        manager = self.manager(["a"], session_factory)

        await manager.reload(Settings(enabled_components=["b"]))

        assert manager.is_running is False
        assert manager.config.enabled_components == ["b"]
