"""
Streaming-specific dataclasses for upstream SSE parsing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class SSEEventType(Enum):
    """Classification of a single ``data:`` line."""
    CHUNK = "chunk"
    COMPLETION = "completion"
    HEARTBEAT = "heartbeat"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class RawSSEChunk:
    """Raw SSE data line from an HTTP response."""
    event_type: SSEEventType
    data: dict[str, Any] | None
    raw_data: str
    error: str | None = None
    timestamp: float = field(default_factory=time.time)
