"""Async HTTP API for the chat backend.

Uses aiohttp's AppRunner/TCPSite for non-blocking start/stop.

Routes:
    GET  /health
    GET  /api/conversation              caller's conversations, newest first
    GET  /api/conversation/{id}         one conversation
    POST /api/conversation              {"message": str, "conversationId"?: str}
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from aiohttp import web

from src.chat.errors import ChatError
from src.config import settings
from src.web.auth import resolve_user_id

if TYPE_CHECKING:
    from src.chat.orchestrator import ConversationOrchestrator

logger = logging.getLogger(__name__)

ORCHESTRATOR_KEY: web.AppKey[ConversationOrchestrator] = web.AppKey("orchestrator")


def _bad_request(detail: str) -> web.Response:
    return web.json_response({"error": "bad_request", "detail": detail}, status=400)


@web.middleware
async def _error_middleware(request: web.Request, handler) -> web.StreamResponse:
    """Render chat failures as ``{"error", "detail"}`` with their status."""
    try:
        return await handler(request)
    except ChatError as exc:
        return web.json_response(exc.to_dict(), status=exc.status)


async def _health(request: web.Request) -> web.Response:
    """GET /health returns a basic liveness check."""
    return web.json_response({"status": "ok"})


async def _list_conversations(request: web.Request) -> web.Response:
    user_id = resolve_user_id(request)
    orchestrator = request.app[ORCHESTRATOR_KEY]
    conversations = await orchestrator.list_conversations(user_id)
    logger.info("Listed %d conversations for user %s", len(conversations), user_id)
    return web.json_response([c.to_public() for c in conversations])


async def _get_conversation(request: web.Request) -> web.Response:
    user_id = resolve_user_id(request)
    orchestrator = request.app[ORCHESTRATOR_KEY]
    conversation = await orchestrator.get_conversation(user_id, request.match_info["id"])
    return web.json_response(conversation.to_public())


async def _post_turn(request: web.Request) -> web.Response:
    """POST /api/conversation runs one chat turn."""
    user_id = resolve_user_id(request)

    try:
        payload: dict[str, Any] = await request.json()
    except ValueError:
        logger.warning("Bad request: invalid JSON (user=%s)", user_id)
        return _bad_request("invalid JSON")

    if not isinstance(payload, dict):
        return _bad_request("expected a JSON object")

    message = payload.get("message")
    if not isinstance(message, str) or not message.strip():
        return _bad_request("message must be a non-empty string")

    conversation_id = payload.get("conversationId")
    if conversation_id is not None and not isinstance(conversation_id, str):
        return _bad_request("conversationId must be a string")

    orchestrator = request.app[ORCHESTRATOR_KEY]
    conversation = await orchestrator.handle_turn(user_id, message, conversation_id or None)
    return web.json_response(conversation.to_public())


def create_app(orchestrator: ConversationOrchestrator) -> web.Application:
    """Build the aiohttp Application with routes."""
    app = web.Application(middlewares=[_error_middleware])
    app[ORCHESTRATOR_KEY] = orchestrator
    app.router.add_get("/health", _health)
    app.router.add_get("/api/conversation", _list_conversations)
    app.router.add_get("/api/conversation/{id}", _get_conversation)
    app.router.add_post("/api/conversation", _post_turn)
    return app


class ChatServer:
    """Manages the aiohttp server lifecycle."""

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        host: str | None = None,
        port: int | None = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.host = host or settings.http_host
        self.port = port or settings.http_port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for chat requests."""
        app = create_app(self.orchestrator)
        self._runner = web.AppRunner(app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Chat server listening on %s:%d", self.host, self.port)

    async def stop(self) -> None:
        """Shut down the server gracefully."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            logger.info("Chat server stopped")
