# Chat transport contracts: the HTTP endpoint and an offline mock.

from __future__ import annotations

import asyncio
import random
from typing import Any, Optional, Protocol

import httpx

from chat_widget.core.constants import CONTEXT_HEADER, FALLBACK_RESPONSES
from chat_widget.core.errors import MalformedResponseError, TransportError
from chat_widget.models import chat as chat_models

from .api import ApiClient, ApiResponse
from .logging import StructuredLogger
from .telemetry import telemetry_span


class ChatTransport(Protocol):
    """Delivers one user message and resolves to the assistant's reply."""

    async def send(self, message: chat_models.Message) -> chat_models.ChatResponse: ...


def parse_chat_response(payload: Any) -> chat_models.ChatResponse:
    """Validate a decoded response body.

    The body must be an object with a non-empty ``response`` string;
    ``source`` and ``queryStage`` are optional.
    """

    if not isinstance(payload, dict):
        raise MalformedResponseError("response body is not a JSON object")
    text = payload.get("response")
    if not isinstance(text, str) or not text.strip():
        raise MalformedResponseError("response body has no reply text")
    source = payload.get("source")
    stage_payload = payload.get("queryStage")
    query_stage = None
    if isinstance(stage_payload, dict) and stage_payload.get("type") and stage_payload.get("stage"):
        query_stage = chat_models.QueryStage(type=str(stage_payload["type"]), stage=str(stage_payload["stage"]))
    return chat_models.ChatResponse(
        response=text,
        source=str(source) if source is not None else None,
        query_stage=query_stage,
    )


class HttpChatTransport:
    """Posts messages as multipart form data to the chat endpoint.

    Network failures and 5xx answers are retried up to
    ``settings.retry_attempts`` times; 4xx answers and malformed bodies fail
    immediately.
    """

    def __init__(self, client: ApiClient, *, logger: Optional[StructuredLogger] = None) -> None:
        self._client = client
        self._logger = logger or StructuredLogger("chat-widget.transport")

    async def send(self, message: chat_models.Message) -> chat_models.ChatResponse:
        settings = self._client.settings
        files = []
        for attachment in message.files:
            # Disk reads stay off the event loop.
            content = await asyncio.to_thread(attachment.read_bytes)
            files.append(("files", (attachment.name, content, attachment.content_type)))
        headers = {CONTEXT_HEADER: message.context.value}
        last_error: TransportError | None = None
        with telemetry_span(self._logger, "transport.chat", message_id=message.id, context=message.context.value):
            for attempt in range(1, settings.retry_attempts + 1):
                try:
                    result = await self._client.post_form(
                        settings.chat_path, {"query": message.content}, files=files, headers=headers
                    )
                except httpx.HTTPError as error:
                    last_error = TransportError(f"chat request failed: {error}")
                    self._logger.warning("transport.chat.retry", attempt=attempt, error=str(error))
                    continue
                if result.status_code >= 500:
                    last_error = TransportError(f"server error {result.status_code}", status_code=result.status_code)
                    self._logger.warning("transport.chat.retry", attempt=attempt, status=result.status_code)
                    continue
                return self._interpret(result)
            raise last_error or TransportError("chat request failed")

    async def aclose(self) -> None:
        await self._client.aclose()

    @staticmethod
    def _interpret(result: ApiResponse) -> chat_models.ChatResponse:
        if not result.ok:
            raise TransportError(f"chat request rejected with {result.status_code}", status_code=result.status_code)
        if result.payload is None:
            raise MalformedResponseError("chat response is not valid JSON")
        return parse_chat_response(result.payload)


class MockChatTransport:
    """Offline transport answering with canned replies after a typing delay."""

    def __init__(self, delay_seconds: float = 1.0, *, jitter_seconds: float = 0.0, seed: int | None = None) -> None:
        self.delay_seconds = delay_seconds
        self.jitter_seconds = jitter_seconds
        self._random = random.Random(seed)
        self.sent: list[chat_models.Message] = []

    async def send(self, message: chat_models.Message) -> chat_models.ChatResponse:
        self.sent.append(message)
        delay = self.delay_seconds + self._random.random() * self.jitter_seconds
        if delay > 0:
            await asyncio.sleep(delay)
        return chat_models.ChatResponse(response=self._random.choice(FALLBACK_RESPONSES), source="mock")
