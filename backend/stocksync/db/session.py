"""Database engine and session management.

The engine/sessionmaker pair is the storage handle shared by every
component. Components receive the sessionmaker explicitly at construction
time; the module-level instance exists for the API dependency and the
application lifespan.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from stocksync.core.config import Settings, settings

_engine: AsyncEngine | None = None
_session_maker: async_sessionmaker[AsyncSession] | None = None


def get_database_url(config: Settings | None = None) -> str:
    """Get the database URL, ensuring the directory exists."""
    config = config or settings
    if config.database_url:
        return config.database_url

    config_path = config.config_path
    if not config_path.exists():
        try:
            config_path.mkdir(parents=True, exist_ok=True)
        except OSError:
            # Fall back to local directory for development
            config_path = Path("./config")
            config_path.mkdir(parents=True, exist_ok=True)

    db_path = config_path / "stocksync.db"
    return f"sqlite+aiosqlite:///{db_path}"


def create_engine_for(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine with the SQLite pragmas the workers rely on."""
    engine = create_async_engine(
        url,
        echo=echo,
        connect_args={
            "timeout": 30,  # Wait up to 30 seconds for locks
        },
        pool_pre_ping=True,
    )

    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        """Enable WAL mode for concurrent import and sweep transactions."""
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.execute("PRAGMA busy_timeout=30000")
        cursor.close()

    return engine


def create_session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory handed to services and workers."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """Get the application database engine, creating it on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine_for(get_database_url(), echo=settings.debug)
    return _engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    """Get the application session factory."""
    global _session_maker
    if _session_maker is None:
        _session_maker = create_session_maker(get_engine())
    return _session_maker


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Create any missing tables."""
    from stocksync.db.base import Base
    from stocksync.db import models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for getting async database sessions.

    Yields:
        An async database session.
    """
    async with get_session_maker()() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def close_db() -> None:
    """Dispose the application engine; the next use creates a fresh one."""
    global _engine, _session_maker
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_maker = None
