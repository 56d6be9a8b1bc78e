"""Tests for KVStore, file fingerprints and settings."""

from __future__ import annotations

import hashlib
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from stocksync.core.config import Settings
from stocksync.db.models import KVEntry
from stocksync.services.kv_store import KVStore
from stocksync.utils.file_hash import compute_file_hash, fingerprint_file


# =============================================================================
# KVStore
# =============================================================================


class TestKVStore:
    """Tests for KVStore."""

    @pytest.mark.asyncio
    async def test_missing_key(self, db_session):
        store = KVStore(db_session)

        assert await store.get("nope") is None
        assert await store.get_time("nope") is None

    @pytest.mark.asyncio
    async def test_set_overwrites(self, db_session):
        store = KVStore(db_session)

        await store.set("cursor", "a")
        await store.set("cursor", "b")
        await db_session.commit()

        assert await store.get("cursor") == "b"

    @pytest.mark.asyncio
    async def test_time_is_normalized_to_utc(self, db_session):
        store = KVStore(db_session)
        local = datetime(2024, 5, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))

        await store.set_time("mark", local)

        assert await store.get("mark") == "2024-05-01T12:00:00+00:00"
        assert await store.get_time("mark") == local

    @pytest.mark.asyncio
    async def test_corrupt_time_reads_as_missing(self, db_session):
        db_session.add(KVEntry(key="mark", value="yesterday-ish"))
        await db_session.flush()

        assert await KVStore(db_session).get_time("mark") is None

    @pytest.mark.asyncio
    async def test_uncommitted_write_is_rolled_back(self, session_factory):
        async with session_factory() as db:
            await KVStore(db).set("cursor", "a")
            await db.rollback()

        async with session_factory() as db:
            assert await KVStore(db).get("cursor") is None


# =============================================================================
# File fingerprints
# =============================================================================


class TestFileFingerprint:
    """Tests for compute_file_hash and fingerprint_file."""

    @pytest.mark.asyncio
    async def test_hash_matches_hashlib(self, tmp_path):
        content = b"<dane/>" * 100_000
        path = tmp_path / "exp_wyk_1.xml"
        path.write_bytes(content)

        assert await compute_file_hash(path, chunk_size=4096) == hashlib.sha256(content).hexdigest()

    @pytest.mark.asyncio
    async def test_fingerprint(self, tmp_path):
        path = tmp_path / "exp_wyk_1.xml"
        path.write_bytes(b"abc")

        fingerprint = await fingerprint_file(path)

        assert fingerprint.size_bytes == 3
        assert fingerprint.sha256 == hashlib.sha256(b"abc").hexdigest()

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            await fingerprint_file(tmp_path / "missing.xml")


# =============================================================================
# Settings
# =============================================================================


class TestSettings:
    """Tests for environment-driven settings."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("STOCKSYNC_WATCH_DIR", raising=False)
        config = Settings()

        assert config.import_file_prefix == "exp_wyk_"
        assert config.import_batch_size == 500
        assert config.sweep_lookback_hours == 24
        assert config.linker_purge_scope == "global"
        assert config.remote_configured is False
        assert config.watch_dir == Path("./xml_in")

    def test_env_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STOCKSYNC_WATCH_DIR", str(tmp_path))
        monkeypatch.setenv("STOCKSYNC_SWEEP_INTERVAL_MINUTES", "15")
        monkeypatch.setenv("STOCKSYNC_REMOTE_CONSUMER_KEY", "ck")
        monkeypatch.setenv("STOCKSYNC_REMOTE_CONSUMER_SECRET", "cs")
        monkeypatch.setenv("STOCKSYNC_ENABLED_COMPONENTS", '["importer"]')

        config = Settings()

        assert config.watch_dir == tmp_path
        assert config.sweep_interval_minutes == 15
        assert config.remote_configured is True
        assert config.enabled_components == ["importer"]

    def test_db_path_under_config_path(self, tmp_path):
        assert Settings(config_path=tmp_path).db_path == tmp_path / "stocksync.db"

    @pytest.mark.parametrize(
        "field,value",
        [
            ("import_batch_size", 0),
            ("remote_per_page", 101),
            ("linker_purge_scope", "everything"),
        ],
    )
    def test_rejects_out_of_range(self, field, value):
        with pytest.raises(ValueError):
            Settings(**{field: value})
