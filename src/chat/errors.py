"""Failure kinds surfaced by the chat core.

Each kind carries a stable ``code`` and the HTTP ``status`` the web layer
maps it to. None of them are retried inside the core.
"""


class ChatError(Exception):
    """Base class for chat failures."""

    code = "internal_error"
    status = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def to_dict(self) -> dict[str, str]:
        return {"error": self.code, "detail": self.message}


class BadRequest(ChatError):
    """The turn input is not usable message text."""

    code = "bad_request"
    status = 400


class Unauthorized(ChatError):
    """No resolvable user identity."""

    code = "unauthorized"
    status = 401


class NotFound(ChatError):
    """The conversation does not exist or is owned by another user."""

    code = "not_found"
    status = 404

    def __init__(self, conversation_id: str) -> None:
        self.conversation_id = conversation_id
        super().__init__(f"Conversation not found: {conversation_id}")


class UpstreamError(ChatError):
    """The completion provider failed. Nothing was persisted."""

    code = "upstream_error"
    status = 502


class PersistenceError(ChatError):
    """A reply was generated but the conversation could not be saved."""

    code = "persistence_error"
    status = 500
