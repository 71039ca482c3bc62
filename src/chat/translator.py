"""Conversation history to completion-provider turn format."""

from __future__ import annotations

from typing import TYPE_CHECKING

from src.chat.models import ModelTurn, Role

if TYPE_CHECKING:
    from collections.abc import Iterable

    from src.chat.models import Message

MODEL_ROLE = "model"
USER_ROLE = "user"


def to_model_role(role: Role) -> str:
    return MODEL_ROLE if role is Role.ASSISTANT else USER_ROLE


def to_model_turn(message: Message) -> ModelTurn:
    return ModelTurn(role=to_model_role(message.role), parts=[{"text": message.content}])


def to_model_history(messages: Iterable[Message]) -> list[ModelTurn]:
    """Map stored messages to provider turns, one for one, order preserved.

    Callers pass the history *without* the live message; that one is sent
    separately so it can carry the retrieval preamble.
    """
    return [to_model_turn(m) for m in messages]
