"""
Client side of the chat event channel.

``StreamConsumer.iter_events`` reconstructs frames from the raw byte stream;
``StreamConsumer.stream_chat`` drives the ``on_chunk`` / ``on_complete`` /
``on_error`` observer API on top of it. Transport and protocol failures never
raise out of the callback driver; they end in exactly one terminal callback.
"""

from __future__ import annotations

import inspect
import json
import logging
from collections.abc import AsyncGenerator, Awaitable, Callable, Sequence
from contextlib import aclosing
from enum import Enum
from typing import Any

import httpx

from todo_chat.llm.exceptions import StreamingError
from todo_chat.llm.models import ChatMessage
from todo_chat.llm.streaming.parser import DATA_PREFIX, SSELineDecoder

from .frames import DEFAULT_ERROR_MESSAGE, StreamEvent, StreamEventType

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[str], Awaitable[None] | None]
CompleteCallback = Callable[[], Awaitable[None] | None]
ErrorCallback = Callable[[str], Awaitable[None] | None]

STREAM_FAILED_FALLBACK = "Failed to stream chat"


class ConsumerState(Enum):
    """Lifecycle of one ``stream_chat`` call."""
    IDLE = "idle"
    REQUESTING = "requesting"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"


def decode_frame_line(line: str) -> StreamEvent | None:
    """Parse a ``data:`` line into a frame; anything unparseable is None."""
    if not line.startswith(DATA_PREFIX):
        return None
    try:
        payload = json.loads(line[len(DATA_PREFIX):])
    except json.JSONDecodeError as e:
        # heartbeat or other noise on the channel
        logger.debug(f"SSE parse error: {e}")
        return None
    if not isinstance(payload, dict):
        return None
    return StreamEvent.from_dict(payload)


def _serialize_messages(messages: Sequence[ChatMessage | dict[str, Any]]) -> list:
    return [
        message.to_payload() if isinstance(message, ChatMessage) else message
        for message in messages
    ]


async def _invoke(callback: Callable[..., Any], *args: Any) -> None:
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


class StreamConsumer:
    """HTTP client for the chat relay endpoints."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url, timeout=timeout, transport=transport
        )
        self.state = ConsumerState.IDLE

    async def iter_events(
        self, messages: Sequence[ChatMessage | dict[str, Any]]
    ) -> AsyncGenerator[StreamEvent]:
        """
        Yield frames as they arrive, stopping after the first terminal frame.

        Raises:
            StreamingError: If the relay answers with a non-success status.
            httpx.HTTPError: On transport failures.
        """
        decoder = SSELineDecoder()
        async with self.client.stream(
            "POST",
            "/chat/stream",
            json={"messages": _serialize_messages(messages)},
            headers={"Accept": "text/event-stream"},
        ) as response:
            if not response.is_success:
                raise StreamingError(
                    f"HTTP error! status: {response.status_code}",
                    status_code=response.status_code,
                )

            async for chunk in response.aiter_bytes():
                for line in decoder.feed(chunk):
                    event = decode_frame_line(line)
                    if event is None:
                        continue
                    yield event
                    if event.is_terminal:
                        return

            for line in decoder.flush():
                event = decode_frame_line(line)
                if event is not None:
                    yield event
                    if event.is_terminal:
                        return

    async def stream_chat(
        self,
        messages: Sequence[ChatMessage | dict[str, Any]],
        on_chunk: ChunkCallback,
        on_complete: CompleteCallback,
        on_error: ErrorCallback,
    ) -> ConsumerState:
        """
        Stream a reply through callbacks.

        ``on_chunk`` receives each incremental fragment; accumulating them is
        the caller's job. If the channel ends without a terminal frame the
        reply is treated as complete. Returns the terminal state.

        An exception from ``on_chunk`` ends the stream through ``on_error``.
        Exceptions raised by ``on_complete`` or ``on_error`` themselves
        propagate to the caller.
        """
        self.state = ConsumerState.REQUESTING
        error_message: str | None = None
        try:
            async with aclosing(self.iter_events(messages)) as events:
                async for event in events:
                    self.state = ConsumerState.STREAMING
                    if event.type == StreamEventType.CONTENT:
                        await _invoke(on_chunk, event.content or "")
                    elif event.type == StreamEventType.DONE:
                        break
                    elif event.type == StreamEventType.ERROR:
                        error_message = event.error or DEFAULT_ERROR_MESSAGE
                        break
        except Exception as e:
            logger.error(f"Stream error: {e}")
            error_message = str(e) or STREAM_FAILED_FALLBACK

        if error_message is not None:
            self.state = ConsumerState.FAILED
            await _invoke(on_error, error_message)
        else:
            self.state = ConsumerState.COMPLETED
            await _invoke(on_complete)
        return self.state

    async def send_chat(self, messages: Sequence[ChatMessage | dict[str, Any]]) -> str:
        """Non-streaming fallback; returns the assistant reply text."""
        response = await self.client.post(
            "/chat", json={"messages": _serialize_messages(messages)}
        )
        if not response.is_success:
            raise StreamingError(
                f"HTTP error! status: {response.status_code}",
                status_code=response.status_code,
            )
        return response.json()["message"]["content"]

    async def list_models(self) -> list[str]:
        response = await self.client.get("/chat/models")
        response.raise_for_status()
        return response.json().get("models", [])

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> StreamConsumer:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
