"""Database module."""

from .session import (
    Base,
    engine,
    async_session_maker,
    create_engine,
    create_session_maker,
    init_db,
    close_db,
)

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "create_engine",
    "create_session_maker",
    "init_db",
    "close_db",
]
