"""ConversationStore: SQLite persistence for conversations and their messages."""

from __future__ import annotations

import logging
import sqlite3
import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from src.chat.errors import PersistenceError
from src.chat.models import Conversation, Message
from src.db import Database

if TYPE_CHECKING:
    import aiosqlite

logger = logging.getLogger(__name__)

_CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS conversations (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_conversations_user ON conversations(user_id, updated_at);

CREATE TABLE IF NOT EXISTS messages (
    conversation_id TEXT NOT NULL REFERENCES conversations(id),
    position INTEGER NOT NULL,
    role TEXT NOT NULL,
    content TEXT NOT NULL CHECK (length(content) > 0),
    timestamp TEXT NOT NULL,
    PRIMARY KEY (conversation_id, position)
);
"""


def make_conversation_id() -> str:
    """Generate a new conversation ID."""
    return uuid.uuid4().hex


class ConversationStore:
    """Conversations scoped by owner.

    Messages are append-only: ``save`` inserts only the messages beyond what
    was stored when the conversation was loaded. If another request appended
    to the same conversation in the meantime the insert collides on
    ``(conversation_id, position)`` and the save fails as a whole.
    """

    def __init__(self, db: Database | None = None) -> None:
        self._db = db or Database.get()
        self._initialised = False

    # -- Internal helpers ------------------------------------------------------

    async def _ensure_schema(self, conn: aiosqlite.Connection) -> None:
        if not self._initialised:
            await conn.executescript(_CREATE_TABLES)
            self._initialised = True

    async def _load_messages(
        self, conn: aiosqlite.Connection, conversation_id: str
    ) -> list[Message]:
        cursor = await conn.execute(
            """
            SELECT role, content, timestamp FROM messages
            WHERE conversation_id = ?
            ORDER BY position
            """,
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [
            Message(role=row[0], content=row[1], timestamp=datetime.fromisoformat(row[2]))
            for row in rows
        ]

    async def _hydrate(self, conn: aiosqlite.Connection, row: tuple) -> Conversation:
        conversation = Conversation(
            id=row[0],
            user_id=row[1],
            created_at=datetime.fromisoformat(row[2]),
            updated_at=datetime.fromisoformat(row[3]),
            messages=await self._load_messages(conn, row[0]),
        )
        conversation.mark_stored()
        return conversation

    # -- Reads -----------------------------------------------------------------

    async def find_by_id(self, conversation_id: str, user_id: str) -> Conversation | None:
        """Fetch a conversation owned by *user_id*, or None.

        A conversation owned by someone else is indistinguishable from one
        that does not exist.
        """
        async with self._db.session() as conn:
            await self._ensure_schema(conn)
            cursor = await conn.execute(
                """
                SELECT id, user_id, created_at, updated_at FROM conversations
                WHERE id = ? AND user_id = ?
                """,
                (conversation_id, user_id),
            )
            row = await cursor.fetchone()
            return await self._hydrate(conn, row) if row else None

    async def find_all_by_user(self, user_id: str) -> list[Conversation]:
        """All conversations owned by *user_id*, most recently updated first."""
        async with self._db.session() as conn:
            await self._ensure_schema(conn)
            cursor = await conn.execute(
                """
                SELECT id, user_id, created_at, updated_at FROM conversations
                WHERE user_id = ?
                ORDER BY updated_at DESC
                """,
                (user_id,),
            )
            rows = await cursor.fetchall()
            return [await self._hydrate(conn, row) for row in rows]

    # -- Writes ----------------------------------------------------------------

    async def save(self, conversation: Conversation) -> Conversation:
        """Insert or update *conversation* in one transaction.

        Returns the stored copy, with ``id`` assigned on first save.
        Raises ``PersistenceError`` if anything fails; nothing is written then.
        """
        saved = conversation.model_copy(deep=True)
        if saved.id is None:
            saved.id = make_conversation_id()
        start = conversation.stored_count

        try:
            async with self._db.transaction() as conn:
                await self._ensure_schema(conn)
                if conversation.is_new:
                    await conn.execute(
                        """
                        INSERT INTO conversations (id, user_id, created_at, updated_at)
                        VALUES (?, ?, ?, ?)
                        """,
                        (
                            saved.id,
                            saved.user_id,
                            saved.created_at.isoformat(),
                            saved.updated_at.isoformat(),
                        ),
                    )
                else:
                    cursor = await conn.execute(
                        "UPDATE conversations SET updated_at = ? WHERE id = ? AND user_id = ?",
                        (saved.updated_at.isoformat(), saved.id, saved.user_id),
                    )
                    if cursor.rowcount == 0:
                        msg = f"conversation {saved.id} is no longer stored"
                        raise PersistenceError(msg)

                await conn.executemany(
                    """
                    INSERT INTO messages (conversation_id, position, role, content, timestamp)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (saved.id, position, m.role.value, m.content, m.timestamp.isoformat())
                        for position, m in enumerate(saved.messages[start:], start=start)
                    ],
                )
        except PersistenceError:
            logger.error("Failed to save conversation %s", saved.id)
            raise
        except (sqlite3.Error, OSError) as exc:
            logger.exception("Failed to save conversation %s", saved.id)
            msg = f"could not save conversation {saved.id}: {exc}"
            raise PersistenceError(msg) from exc

        saved.mark_stored()
        logger.info("Saved conversation %s (%d messages)", saved.id, len(saved.messages))
        return saved
