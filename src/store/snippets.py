"""SnippetStore: read side of the reference documents used for retrieval context."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from src.chat.models import Snippet
from src.db import Database

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)

_CREATE_TABLE = """
CREATE TABLE IF NOT EXISTS snippets (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT NOT NULL DEFAULT '',
    created_at TEXT NOT NULL
)
"""


def _from_row(row: tuple) -> Snippet:
    return Snippet(
        id=row[0],
        user_id=row[1],
        title=row[2],
        description=row[3] or "",
        created_at=datetime.fromisoformat(row[4]),
    )


class SnippetStore:
    """Snippets scoped by owner. The chat core only ever reads them."""

    def __init__(self, db: Database | None = None) -> None:
        self._db = db or Database.get()
        self._initialised = False

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        if not self._initialised:
            await conn.execute(_CREATE_TABLE)
            self._initialised = True

    async def list_by_user(self, user_id: str, limit: int = 5) -> list[Snippet]:
        """Return up to *limit* of the user's snippets, newest first."""
        async with self._db.session() as conn:
            await self._ensure_schema(conn)
            cursor = await conn.execute(
                """
                SELECT id, user_id, title, description, created_at FROM snippets
                WHERE user_id = ?
                ORDER BY created_at DESC, rowid DESC
                LIMIT ?
                """,
                (user_id, limit),
            )
            rows = await cursor.fetchall()
            return [_from_row(row) for row in rows]

    async def add(self, user_id: str, title: str, description: str = "") -> Snippet:
        """Store a snippet for *user_id*. Used for seeding and tests."""
        snippet = Snippet(
            id=uuid.uuid4().hex, user_id=user_id, title=title, description=description
        )
        async with self._db.transaction() as conn:
            await self._ensure_schema(conn)
            await conn.execute(
                """
                INSERT INTO snippets (id, user_id, title, description, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    snippet.id,
                    snippet.user_id,
                    snippet.title,
                    snippet.description,
                    snippet.created_at.isoformat(),
                ),
            )
        logger.info("Added snippet %s for user %s", snippet.id, user_id)
        return snippet
