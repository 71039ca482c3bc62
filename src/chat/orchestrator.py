"""Conversation orchestration: one user turn in, one persisted exchange out."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from src.chat.errors import BadRequest, NotFound, Unauthorized
from src.chat.models import Conversation, Role, utcnow
from src.chat.translator import to_model_history

if TYPE_CHECKING:
    from src.chat.context import ContextInjector
    from src.llm.client import CompletionModel
    from src.store.conversations import ConversationStore

logger = logging.getLogger(__name__)


def _check_text(user_text: str) -> None:
    if not user_text or not user_text.strip():
        msg = "message must be a non-empty string"
        raise BadRequest(msg)
    try:
        user_text.encode("utf-8")
    except UnicodeEncodeError as exc:
        msg = "message is not valid UTF-8 text"
        raise BadRequest(msg) from exc


class ConversationOrchestrator:
    """Runs a chat turn against stored conversation state.

    Nothing is written until the model has replied, so a failed or
    cancelled turn leaves the stored conversation exactly as it was and
    can simply be retried. Successful turns do exactly one store write.
    """

    def __init__(
        self,
        store: ConversationStore,
        injector: ContextInjector,
        model: CompletionModel,
    ) -> None:
        self.store = store
        self.injector = injector
        self.model = model

    async def _load(self, user_id: str, conversation_id: str | None) -> Conversation:
        if not user_id:
            msg = "Unauthorized"
            raise Unauthorized(msg)
        if not conversation_id:
            return Conversation(user_id=user_id)

        conversation = await self.store.find_by_id(conversation_id, user_id)
        if conversation is None:
            logger.warning("Conversation not found: id=%s user=%s", conversation_id, user_id)
            raise NotFound(conversation_id)
        return conversation

    async def handle_turn(
        self, user_id: str, user_text: str, conversation_id: str | None = None
    ) -> Conversation:
        """Append *user_text* and the model's reply, persist, return the result.

        Raises:
            BadRequest: *user_text* is blank or not encodable text.
            Unauthorized: *user_id* is empty.
            NotFound: *conversation_id* is not one of the caller's conversations.
            UpstreamError: the model call failed; nothing was stored.
            PersistenceError: the reply could not be stored.
        """
        logger.info("Turn received: user=%s conversation=%s", user_id, conversation_id or "new")
        _check_text(user_text)
        conversation = await self._load(user_id, conversation_id)

        conversation.append(Role.USER, user_text)
        is_first_turn = len(conversation.messages) == 1

        outgoing = await self.injector.build_outgoing(user_id, user_text, is_first_turn)
        history = to_model_history(conversation.messages[:-1])

        logger.info("Sending turn to model: history=%d, first_turn=%s", len(history), is_first_turn)
        reply = await self.model.send(history, outgoing)
        logger.info("Received model reply (%d chars)", len(reply))
        logger.debug("Reply preview: %s", reply[:100])

        conversation.append(Role.ASSISTANT, reply)
        conversation.updated_at = utcnow()
        return await self.store.save(conversation)

    async def list_conversations(self, user_id: str) -> list[Conversation]:
        """The caller's conversations, most recently updated first."""
        if not user_id:
            msg = "Unauthorized"
            raise Unauthorized(msg)
        return await self.store.find_all_by_user(user_id)

    async def get_conversation(self, user_id: str, conversation_id: str) -> Conversation:
        return await self._load(user_id, conversation_id)
