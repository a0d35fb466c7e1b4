"""
Streaming functionality for the chat relay.

This package contains:
- SSE line decoding that tolerates arbitrary chunk boundaries
- ``data:`` line classification (chunk, completion, heartbeat, malformed)
- Delta content extraction for OpenAI-compatible completion chunks
"""

from .models import RawSSEChunk, SSEEventType
from .parser import (
    DATA_PREFIX,
    SSELineDecoder,
    StreamingParser,
    extract_delta_content,
    parse_sse_line,
)

__all__ = [
    "DATA_PREFIX",
    "RawSSEChunk",
    "SSEEventType",
    "SSELineDecoder",
    "StreamingParser",
    "extract_delta_content",
    "parse_sse_line",
]
