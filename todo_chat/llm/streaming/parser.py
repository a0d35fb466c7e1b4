"""
SSE line decoding shared by the upstream client and the stream consumer.

Both sides of the relay speak ``data: <JSON>`` lines; the decoder turns an
arbitrarily chunked byte stream into complete lines, and ``parse_sse_line``
classifies each one.
"""

from __future__ import annotations

import codecs
import json
from collections.abc import AsyncGenerator
from typing import Any

import httpx

from .models import RawSSEChunk, SSEEventType

DATA_PREFIX = "data: "
DONE_MARKER = "[DONE]"
HEARTBEAT_PAYLOADS = ("", "ping", "heartbeat")


class SSELineDecoder:
    """
    Incremental bytes-to-lines decoder.

    Chunks may split a line, or a multi-byte UTF-8 sequence, anywhere. The
    last (possibly incomplete) segment is held back until a later ``feed``
    completes it.
    """

    def __init__(self, encoding: str = "utf-8"):
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    def feed(self, chunk: bytes) -> list[str]:
        """Append a chunk and return every line it completed."""
        self._buffer += self._decoder.decode(chunk)
        lines = self._buffer.split("\n")
        self._buffer = lines.pop()
        return [line.rstrip("\r") for line in lines]

    def flush(self) -> list[str]:
        """Return the held-back segment as a final line, if any."""
        self._buffer += self._decoder.decode(b"", final=True)
        remainder, self._buffer = self._buffer, ""
        return [remainder.rstrip("\r")] if remainder else []

    @property
    def pending(self) -> str:
        return self._buffer


def parse_sse_line(line: str) -> RawSSEChunk | None:
    """Classify one line; returns None for lines without a ``data: `` prefix."""
    if not line.startswith(DATA_PREFIX):
        return None

    data_content = line[len(DATA_PREFIX):]
    stripped = data_content.strip()

    if stripped == DONE_MARKER:
        return RawSSEChunk(
            event_type=SSEEventType.COMPLETION, data=None, raw_data=DONE_MARKER
        )

    if stripped in HEARTBEAT_PAYLOADS:
        return RawSSEChunk(
            event_type=SSEEventType.HEARTBEAT, data=None, raw_data=data_content
        )

    try:
        parsed = json.loads(data_content)
    except json.JSONDecodeError as e:
        return RawSSEChunk(
            event_type=SSEEventType.MALFORMED,
            data=None,
            raw_data=data_content,
            error=f"JSON decode error: {e}",
        )

    if not isinstance(parsed, dict):
        return RawSSEChunk(
            event_type=SSEEventType.MALFORMED,
            data=None,
            raw_data=data_content,
            error=f"Expected JSON object, got {type(parsed).__name__}",
        )

    return RawSSEChunk(
        event_type=SSEEventType.CHUNK, data=parsed, raw_data=data_content
    )


def extract_delta_content(data: dict[str, Any] | None) -> str | None:
    """Pull ``choices[0].delta.content`` out of a completion chunk."""
    if not data:
        return None
    choices = data.get("choices") or []
    if not choices:
        return None
    delta = choices[0].get("delta") or {}
    content = delta.get("content")
    return content if isinstance(content, str) and content else None


class StreamingParser:
    """SSE parser over an httpx response with simple counters for monitoring."""

    def __init__(self):
        self.stats = {
            "total_chunks": 0,
            "heartbeats": 0,
            "malformed_chunks": 0,
        }

    async def parse_sse_stream(
        self, response: httpx.Response
    ) -> AsyncGenerator[RawSSEChunk]:
        """
        Yield classified ``data:`` lines until ``[DONE]`` or end of body.

        Heartbeats are counted and dropped; malformed lines are yielded so the
        caller decides whether they are fatal.
        """
        decoder = SSELineDecoder()

        async for chunk_bytes in response.aiter_bytes():
            for line in decoder.feed(chunk_bytes):
                chunk = self._classify(line)
                if chunk is None:
                    continue
                yield chunk
                if chunk.event_type == SSEEventType.COMPLETION:
                    return

        for line in decoder.flush():
            chunk = self._classify(line)
            if chunk is not None:
                yield chunk

    def _classify(self, line: str) -> RawSSEChunk | None:
        chunk = parse_sse_line(line)
        if chunk is None:
            return None
        if chunk.event_type == SSEEventType.HEARTBEAT:
            self.stats["heartbeats"] += 1
            return None
        if chunk.event_type == SSEEventType.MALFORMED:
            self.stats["malformed_chunks"] += 1
        else:
            self.stats["total_chunks"] += 1
        return chunk

    def get_stats(self) -> dict[str, int]:
        """Get streaming statistics for monitoring."""
        return self.stats.copy()

    def reset_stats(self) -> None:
        """Reset statistics counters."""
        self.stats = {
            "total_chunks": 0,
            "heartbeats": 0,
            "malformed_chunks": 0,
        }
