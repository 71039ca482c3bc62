"""Retrieval preamble for the first turn of a conversation."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.config import settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src.chat.models import Snippet
    from src.store.snippets import SnippetStore

logger = logging.getLogger(__name__)

GUIDELINES = (
    "Provide clear, concise explanations",
    "Share code examples when relevant",
    "Reference available snippets when appropriate",
    "Follow best practices and security guidelines",
    "Ask for clarification if needed",
    "You are supposed to perform RAG on the available snippets and your knowledge "
    "base is limited to the available snippets.",
    "If you are not sure about the answer, just say that you don't know. "
    "Don't try to make up an answer.",
)


def format_snippets(snippets: Sequence[Snippet]) -> str:
    """One ``title: description`` line per snippet. Empty input gives ``""``."""
    return "\n".join(f"{s.title}: {s.description}" for s in snippets)


def build_preamble(raw_text: str, snippets: Sequence[Snippet], assistant_name: str) -> str:
    """Wrap the user's first message with persona, snippets and guidelines."""
    guidelines = "\n".join(f"{i}. {line}" for i, line in enumerate(GUIDELINES, start=1))
    return (
        f"You are {assistant_name}, an intelligent programming assistant.\n"
        "\n"
        "Available Snippets:\n"
        f"{format_snippets(snippets)}\n"
        "\n"
        "Guidelines:\n"
        f"{guidelines}\n"
        f"User's message: {raw_text}"
    )


class ContextInjector:
    """Decides what text goes out to the model for a user turn."""

    def __init__(
        self,
        snippets: SnippetStore,
        *,
        limit: int | None = None,
        assistant_name: str | None = None,
    ) -> None:
        self._snippets = snippets
        self._limit = limit if limit is not None else settings.snippet_context_limit
        self._assistant_name = assistant_name or settings.assistant_name

    async def build_outgoing(self, user_id: str, raw_text: str, is_first_turn: bool) -> str:
        """Return the preamble on the first turn, ``raw_text`` untouched otherwise."""
        if not is_first_turn:
            return raw_text

        snippets = await self._snippets.list_by_user(user_id, limit=self._limit)
        logger.info("Injecting retrieval context: user=%s, snippets=%d", user_id, len(snippets))
        return build_preamble(raw_text, snippets, self._assistant_name)
