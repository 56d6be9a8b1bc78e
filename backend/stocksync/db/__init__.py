"""Database package for stocksync."""

from stocksync.db.base import Base
from stocksync.db.session import (
    close_db,
    create_engine_for,
    create_session_maker,
    get_db,
    get_engine,
    get_session_maker,
    init_db,
)

__all__ = [
    "Base",
    "close_db",
    "create_engine_for",
    "create_session_maker",
    "get_db",
    "get_engine",
    "get_session_maker",
    "init_db",
]
