"""
Chat relay between HTTP callers and the upstream completion service.

The streaming path turns the upstream token sequence into event frames:
``connected``, any number of ``content`` frames in arrival order, then exactly
one terminal ``done`` or ``error`` frame. Once the first frame is out the
response headers are committed, so failures are reported in-band only.
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import AsyncGenerator
from contextlib import aclosing
from typing import Any

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from todo_chat.exceptions import ValidationError
from todo_chat.llm.client import UpstreamChatClient
from todo_chat.llm.models import ChatMessage
from todo_chat.logging_utils import ContextualLogger, log_operation, operation_context

from .frames import StreamEvent

MESSAGES_REQUIRED = "Messages array is required"
STREAM_FAILED_MESSAGE = "Failed to stream response from AI model"
CHAT_FAILED_MESSAGE = "Failed to get response from AI model"

_messages_adapter = TypeAdapter(list[ChatMessage])


def validate_messages(payload: Any) -> list[ChatMessage]:
    """
    Extract and validate ``messages`` from a decoded request body.

    Raises:
        ValidationError: If ``messages`` is absent, not a list, empty, or
            contains an item that is not a chat message.
    """
    if not isinstance(payload, dict):
        raise ValidationError(MESSAGES_REQUIRED)

    messages = payload.get("messages")
    if not messages or not isinstance(messages, list):
        raise ValidationError(MESSAGES_REQUIRED)

    try:
        return _messages_adapter.validate_python(messages)
    except PydanticValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ValidationError(
            f"Invalid message at {location}: {first['msg']}"
        ) from e


class ChatRelay:
    """Forwards chat requests to the upstream client in both modes."""

    def __init__(self, llm_client: UpstreamChatClient):
        self.llm_client = llm_client

    async def stream_events(
        self, messages: list[ChatMessage]
    ) -> AsyncGenerator[StreamEvent]:
        """
        Relay upstream fragments as frames.

        Upstream failures end the stream with a single generic ``error`` frame
        and never propagate. Cancellation (client disconnect) closes the
        upstream response and is re-raised.
        """
        log = ContextualLogger({
            "request_id": str(uuid.uuid4()),
            "message_count": len(messages),
        })

        yield StreamEvent.connected()

        fragment_count = 0
        try:
            async with aclosing(self.llm_client.complete_stream(messages)) as fragments:
                async for fragment in fragments:
                    fragment_count += 1
                    yield StreamEvent.chunk(fragment)
        except asyncio.CancelledError:
            log.warning("Client disconnected, upstream stream closed",
                        fragments_sent=fragment_count)
            raise
        except Exception as e:
            log.error(
                "Stream error",
                error_type=type(e).__name__,
                error_message=str(e),
                fragments_sent=fragment_count,
            )
            yield StreamEvent.failure(STREAM_FAILED_MESSAGE)
            return

        log.info("Stream completed", fragments_sent=fragment_count)
        yield StreamEvent.done()

    async def stream_frames(self, messages: list[ChatMessage]) -> AsyncGenerator[str]:
        """Encoded frames, ready to be written to an event-stream response."""
        async with aclosing(self.stream_events(messages)) as events:
            async for event in events:
                yield event.encode()

    async def complete(self, messages: list[ChatMessage]) -> dict[str, Any]:
        """Non-streaming call wrapped in the assistant message envelope."""
        async with operation_context(
            "chat_complete", context={"message_count": len(messages)}
        ):
            text = await self.llm_client.complete_once(messages)
        return {"message": {"role": "assistant", "content": text}}

    @log_operation("list_models")
    async def list_models(self) -> dict[str, list[str]]:
        return {"models": await self.llm_client.list_models()}
