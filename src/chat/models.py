"""Data models for conversations, messages and reference snippets."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr, field_validator

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Role(StrEnum):
    """Speaker of a stored message."""

    USER = "user"
    ASSISTANT = "assistant"


class Message(BaseModel):
    """A single conversation message. Never mutated once appended."""

    model_config = {"frozen": True}

    role: Role
    content: str = Field(min_length=1)
    timestamp: datetime = Field(default_factory=utcnow)

    @field_validator("role", mode="before")
    @classmethod
    def _normalize_role(cls, value: Any) -> Any:
        # Records written by other tools may carry anything in the role column.
        if isinstance(value, Role):
            return value
        try:
            return Role(str(value).lower())
        except ValueError:
            logger.warning("Unknown message role %r, treating as user", value)
            return Role.USER

    def to_public(self) -> dict[str, Any]:
        return {
            "role": self.role.value,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
        }


class Conversation(BaseModel):
    """Append-only message log owned by one user.

    Attributes:
        id: Assigned by the store on first save; ``None`` until then.
        user_id: Owner. Every read and write is scoped to it.
        messages: Turn order. Never reordered or deduplicated.
        created_at: Set at creation.
        updated_at: Refreshed once per completed turn.
    """

    id: str | None = None
    user_id: str
    messages: list[Message] = Field(default_factory=list)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    # Messages already durable in the store; anything past this is pending.
    _stored_count: int = PrivateAttr(default=0)

    @property
    def is_new(self) -> bool:
        return self.id is None

    @property
    def stored_count(self) -> int:
        return self._stored_count

    def mark_stored(self) -> None:
        self._stored_count = len(self.messages)

    def append(self, role: Role, content: str) -> Message:
        """Append a message stamped with the current time."""
        message = Message(role=role, content=content)
        self.messages.append(message)
        return message

    def to_public(self) -> dict[str, Any]:
        """JSON-safe outbound record."""
        return {
            "id": self.id,
            "userId": self.user_id,
            "messages": [m.to_public() for m in self.messages],
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }


class Snippet(BaseModel):
    """Reference document. Only these fields feed the retrieval context."""

    id: str = ""
    user_id: str
    title: str
    description: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class ModelTurn(BaseModel):
    """One turn in the completion provider's alternating-turn format."""

    role: str  # "user" or "model"
    parts: list[dict[str, str]]

    @property
    def text(self) -> str:
        return "".join(part.get("text", "") for part in self.parts)

    def to_payload(self) -> dict[str, Any]:
        return {"role": self.role, "parts": [dict(p) for p in self.parts]}
