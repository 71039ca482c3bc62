"""Tests for retrieval-context injection."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.chat.context import GUIDELINES, ContextInjector, build_preamble, format_snippets
from src.chat.models import Snippet


def _snippet(title: str, description: str) -> Snippet:
    return Snippet(user_id="u1", title=title, description=description)


@pytest.fixture
def snippets() -> MagicMock:
    store = MagicMock()
    store.list_by_user = AsyncMock(return_value=[])
    return store


def test_format_snippets_empty() -> None:
    assert format_snippets([]) == ""


def test_format_snippets_one_line_each() -> None:
    result = format_snippets([
        _snippet("Debounce", "Delay a callback"),
        _snippet("Retry", "Exponential backoff helper"),
    ])
    assert result == "Debounce: Delay a callback\nRetry: Exponential backoff helper"


def test_preamble_structure() -> None:
    text = build_preamble("hi", [_snippet("Debounce", "Delay a callback")], "CodeCache AI")

    assert text.startswith("You are CodeCache AI, an intelligent programming assistant.")
    assert "Available Snippets:\nDebounce: Delay a callback\n" in text
    assert "Guidelines:\n1. Provide clear, concise explanations" in text
    assert f"{len(GUIDELINES)}. If you are not sure about the answer" in text
    assert text.endswith("User's message: hi")


async def test_later_turns_pass_through(snippets: MagicMock) -> None:
    injector = ContextInjector(snippets, limit=5)

    result = await injector.build_outgoing("u1", "continue", is_first_turn=False)

    assert result == "continue"
    snippets.list_by_user.assert_not_called()


async def test_first_turn_wraps_raw_text(snippets: MagicMock) -> None:
    snippets.list_by_user.return_value = [_snippet("Debounce", "Delay a callback")]
    injector = ContextInjector(snippets, limit=5, assistant_name="CodeCache AI")

    result = await injector.build_outgoing("u1", "How do I debounce?", is_first_turn=True)

    assert result != "How do I debounce?"
    assert result.endswith("User's message: How do I debounce?")
    assert "Debounce: Delay a callback" in result
    snippets.list_by_user.assert_awaited_once_with("u1", limit=5)


async def test_first_turn_without_snippets_still_wraps(snippets: MagicMock) -> None:
    injector = ContextInjector(snippets, limit=5, assistant_name="CodeCache AI")

    result = await injector.build_outgoing("u1", "What is a snippet?", is_first_turn=True)

    assert "Available Snippets:\n\n\nGuidelines:" in result
    assert result.endswith("User's message: What is a snippet?")


async def test_limit_comes_from_settings_by_default(snippets: MagicMock) -> None:
    injector = ContextInjector(snippets)

    await injector.build_outgoing("u1", "hi", is_first_turn=True)

    assert snippets.list_by_user.call_args.kwargs["limit"] == 5
