"""Completion model clients.

Two providers share one interface, ``send(history, live_text) -> reply``:

- Gemini over its REST API, using a shared aiohttp session.
- Claude via the Anthropic SDK.

Every provider-side failure is re-raised as ``UpstreamError``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Protocol

import aiohttp
import anthropic

from src.chat.errors import UpstreamError
from src.config import settings

if TYPE_CHECKING:
    from collections.abc import Sequence

    from src.chat.models import ModelTurn

logger = logging.getLogger(__name__)


class CompletionModel(Protocol):
    """Anything that can answer a live turn given the prior history."""

    async def send(self, history: Sequence[ModelTurn], live_text: str) -> str: ...

    async def close(self) -> None: ...


class GeminiModel:
    """Gemini ``generateContent`` over HTTP."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        *,
        api_url: str | None = None,
        max_output_tokens: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.gemini_api_key
        self.model = model or settings.gemini_model
        self.api_url = (api_url or settings.gemini_api_url).rstrip("/")
        self.max_output_tokens = max_output_tokens or settings.max_output_tokens
        self.timeout = timeout or settings.model_timeout_seconds
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        """Return (and lazily create) the shared aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    def build_payload(self, history: Sequence[ModelTurn], live_text: str) -> dict[str, Any]:
        contents = [turn.to_payload() for turn in history]
        contents.append({"role": "user", "parts": [{"text": live_text}]})
        return {
            "contents": contents,
            "generationConfig": {"maxOutputTokens": self.max_output_tokens},
        }

    @staticmethod
    def extract_text(body: dict[str, Any]) -> str:
        """Pull the reply text out of a generateContent response body."""
        candidates = body.get("candidates") or []
        if not candidates:
            reason = body.get("promptFeedback", {}).get("blockReason", "no candidates")
            msg = f"Gemini returned no reply ({reason})"
            raise UpstreamError(msg)

        parts = candidates[0].get("content", {}).get("parts") or []
        text = "".join(part.get("text", "") for part in parts)
        if not text:
            finish = candidates[0].get("finishReason", "unknown")
            msg = f"Gemini returned an empty reply (finishReason={finish})"
            raise UpstreamError(msg)
        return text

    async def send(self, history: Sequence[ModelTurn], live_text: str) -> str:
        if not self.api_key:
            msg = "Gemini not configured: missing GEMINI_API_KEY"
            raise UpstreamError(msg)

        url = f"{self.api_url}/models/{self.model}:generateContent"
        payload = self.build_payload(history, live_text)
        session = self._get_session()
        try:
            async with session.post(
                url, params={"key": self.api_key}, json=payload
            ) as resp:
                if resp.status != 200:
                    text = await resp.text()
                    logger.error("Gemini call failed: status=%d body=%s", resp.status, text[:200])
                    msg = f"Gemini returned HTTP {resp.status}"
                    raise UpstreamError(msg)
                body = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.exception("Gemini call failed (network error)")
            msg = f"Gemini request failed: {exc}"
            raise UpstreamError(msg) from exc

        return self.extract_text(body)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None


class AnthropicModel:
    """Claude via the Anthropic Messages API."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        *,
        max_output_tokens: int | None = None,
        timeout: float | None = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.claude_model
        self.max_output_tokens = max_output_tokens or settings.max_output_tokens
        self.timeout = timeout or settings.model_timeout_seconds
        self._client: anthropic.AsyncAnthropic | None = None

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Lazily initialize the Anthropic client."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key, timeout=self.timeout)
        return self._client

    @staticmethod
    def build_messages(history: Sequence[ModelTurn], live_text: str) -> list[dict[str, str]]:
        messages = [
            {"role": "assistant" if turn.role == "model" else "user", "content": turn.text}
            for turn in history
        ]
        messages.append({"role": "user", "content": live_text})
        return messages

    async def send(self, history: Sequence[ModelTurn], live_text: str) -> str:
        client = self._get_client()
        try:
            response = await client.messages.create(
                model=self.model,
                max_tokens=self.max_output_tokens,
                messages=self.build_messages(history, live_text),
            )
        except anthropic.APIError as exc:
            logger.exception("Anthropic call failed")
            msg = f"Anthropic request failed: {exc}"
            raise UpstreamError(msg) from exc

        text = "".join(block.text for block in response.content if block.type == "text")
        if not text:
            msg = f"Anthropic returned an empty reply (stop_reason={response.stop_reason})"
            raise UpstreamError(msg)
        return text

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None


PROVIDERS: dict[str, type[GeminiModel] | type[AnthropicModel]] = {
    "gemini": GeminiModel,
    "anthropic": AnthropicModel,
}

_model: CompletionModel | None = None


def get_completion_model() -> CompletionModel:
    """Return the process-wide client for the configured provider."""
    global _model  # noqa: PLW0603
    if _model is None:
        provider = settings.completion_provider.lower()
        cls = PROVIDERS.get(provider)
        if cls is None:
            msg = f"Unknown completion provider: {settings.completion_provider}"
            raise ValueError(msg)
        _model = cls()
        logger.info("Completion provider: %s (%s)", provider, _model.model)
    return _model
