"""Pytest configuration and fixtures."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

# Create a temporary directory for test paths
_test_tmp_dir = tempfile.mkdtemp(prefix="stocksync_test_")

# Set config BEFORE importing stocksync modules
os.environ["STOCKSYNC_CONFIG_PATH"] = str(Path(_test_tmp_dir) / "config")
os.environ["STOCKSYNC_WATCH_DIR"] = str(Path(_test_tmp_dir) / "xml_in")
os.environ["STOCKSYNC_SYNC_ENABLED"] = "false"

from stocksync.db import create_engine_for, create_session_maker, get_db, init_db
from stocksync.db.base import Base
from stocksync.main import app
from stocksync.workers.manager import WorkerManager, get_worker_manager


@pytest.fixture
async def db_engine(tmp_path):
    """File-backed SQLite engine with the application's pragmas and schema."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    """The storage handle handed to services and workers."""
    return create_session_maker(db_engine)


@pytest.fixture
async def db_session(session_factory):
    """A session for arranging and asserting state."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def watch_dir(tmp_path):
    path = tmp_path / "xml_in"
    path.mkdir()
    return path


@pytest.fixture
def api_db_path(tmp_path):
    return tmp_path / "api.db"


@pytest.fixture
def sync_session(api_db_path):
    """Synchronous session on the API test database, for arranging rows.

    The API runs on the TestClient's own event loop, so arranging happens
    through the plain sqlite3 driver instead of an async engine.
    """
    engine = create_engine(f"sqlite:///{api_db_path}")
    Base.metadata.create_all(engine)
    with Session(engine, expire_on_commit=False) as session:
        yield session
    engine.dispose()


@pytest.fixture
def client(api_db_path, sync_session):
    """Test client wired to the API test database and an idle worker manager."""
    engine = create_engine_for(f"sqlite+aiosqlite:///{api_db_path}")
    session_factory = create_session_maker(engine)

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    manager = WorkerManager(session_factory=session_factory, factories={})

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_worker_manager] = lambda: manager

    with TestClient(app) as test_client:
        yield test_client
        test_client.portal.call(engine.dispose)

    app.dependency_overrides.clear()


def pytest_sessionfinish(session, exitstatus):
    """Clean up temp directories after test session."""
    import shutil
    if Path(_test_tmp_dir).exists():
        shutil.rmtree(_test_tmp_dir, ignore_errors=True)
