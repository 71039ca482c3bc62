"""Shared async SQLite connection.

One ``aiosqlite`` connection per process, opened lazily on first use and
reused by every store. aiosqlite runs statements on a single worker thread;
``session()`` additionally serialises whole units of work so a reader never
observes another request's half-written transaction.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import aiosqlite

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import AsyncIterator
    from pathlib import Path

logger = logging.getLogger(__name__)


class Database:
    """Lazily established, process-wide SQLite connection.

    Singleton accessed via ``Database.get()``.  Pass an explicit *db_path*
    for test isolation (e.g. ``tmp_path / "test.db"``).
    """

    _instance: Database | None = None

    def __init__(self, db_path: Path | None = None) -> None:
        self._db_path = db_path or settings.database_path
        self._conn: aiosqlite.Connection | None = None
        self._open_lock = asyncio.Lock()
        self._lock = asyncio.Lock()

    @classmethod
    def get(cls) -> Database:
        """Return the shared Database instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def _reset(cls) -> None:
        """Reset the singleton (for testing)."""
        cls._instance = None

    @property
    def path(self) -> Path:
        return self._db_path

    async def connect(self) -> aiosqlite.Connection:
        """Return the shared connection, opening it on first call."""
        if self._conn is not None:
            return self._conn
        async with self._open_lock:
            if self._conn is None:
                self._db_path.parent.mkdir(parents=True, exist_ok=True)
                conn = await aiosqlite.connect(str(self._db_path))
                await conn.execute("PRAGMA journal_mode=WAL")
                await conn.execute("PRAGMA busy_timeout=5000")
                await conn.execute("PRAGMA foreign_keys=ON")
                self._conn = conn
                logger.info("Opened database at %s", self._db_path)
        return self._conn

    @asynccontextmanager
    async def session(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive use of the connection for a read-only unit of work."""
        conn = await self.connect()
        async with self._lock:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[aiosqlite.Connection]:
        """Exclusive use of the connection; commit on success, roll back on error."""
        conn = await self.connect()
        async with self._lock:
            try:
                yield conn
                await conn.commit()
            except BaseException:
                await conn.rollback()
                raise

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None
            logger.info("Closed database")
