"""Shared test fixtures."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from src.chat.context import ContextInjector
from src.chat.orchestrator import ConversationOrchestrator
from src.db import Database
from src.store.conversations import ConversationStore
from src.store.snippets import SnippetStore


@pytest.fixture
async def db(tmp_path: Path):
    """A Database backed by a temp file, closed after the test."""
    database = Database(db_path=tmp_path / "test.db")
    yield database
    await database.close()


@pytest.fixture
def conversation_store(db: Database) -> ConversationStore:
    return ConversationStore(db)


@pytest.fixture
def snippet_store(db: Database) -> SnippetStore:
    return SnippetStore(db)


@pytest.fixture
def model() -> MagicMock:
    """Completion model double that always answers "reply"."""
    m = MagicMock()
    m.send = AsyncMock(return_value="reply")
    m.close = AsyncMock()
    return m


@pytest.fixture
def orchestrator(
    conversation_store: ConversationStore, snippet_store: SnippetStore, model: MagicMock
) -> ConversationOrchestrator:
    return ConversationOrchestrator(
        store=conversation_store,
        injector=ContextInjector(snippet_store, limit=5, assistant_name="CodeCache AI"),
        model=model,
    )
