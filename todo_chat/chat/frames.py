"""
Event-channel frames exchanged between the relay and the stream consumer.

Wire format: one frame per ``data: <JSON>\\n\\n`` line, where the JSON object
has a ``type`` of ``connected``, ``content``, ``done`` or ``error``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any

DEFAULT_ERROR_MESSAGE = "Unknown error"


class StreamEventType(Enum):
    """Frame types on the event channel."""
    CONNECTED = "connected"
    CONTENT = "content"
    DONE = "done"
    ERROR = "error"


TERMINAL_EVENT_TYPES = frozenset({StreamEventType.DONE, StreamEventType.ERROR})


@dataclass(frozen=True)
class StreamEvent:
    """A single frame; ``content`` and ``error`` are the only payloads."""
    type: StreamEventType
    content: str | None = None
    error: str | None = None

    @classmethod
    def connected(cls) -> StreamEvent:
        return cls(StreamEventType.CONNECTED)

    @classmethod
    def chunk(cls, content: str) -> StreamEvent:
        return cls(StreamEventType.CONTENT, content=content)

    @classmethod
    def done(cls) -> StreamEvent:
        return cls(StreamEventType.DONE)

    @classmethod
    def failure(cls, error: str) -> StreamEvent:
        return cls(StreamEventType.ERROR, error=error)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENT_TYPES

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"type": self.type.value}
        if self.type == StreamEventType.CONTENT:
            payload["content"] = self.content or ""
        elif self.type == StreamEventType.ERROR:
            payload["error"] = self.error or DEFAULT_ERROR_MESSAGE
        return payload

    def encode(self) -> str:
        """Render as an SSE frame."""
        return f"data: {json.dumps(self.to_dict())}\n\n"

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> StreamEvent | None:
        """
        Build a frame from decoded JSON.

        Returns None for objects without a known ``type``; the consumer treats
        those like any other noise on the channel.
        """
        try:
            event_type = StreamEventType(payload.get("type"))
        except ValueError:
            return None

        if event_type == StreamEventType.CONTENT:
            content = payload.get("content")
            return cls.chunk(content if isinstance(content, str) else "")
        if event_type == StreamEventType.ERROR:
            error = payload.get("error")
            return cls.failure(error if error else DEFAULT_ERROR_MESSAGE)
        return cls(event_type)
