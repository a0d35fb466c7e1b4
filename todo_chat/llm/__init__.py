"""
Upstream LLM integration.

This package provides:
- Pydantic chat message models (text and image parts)
- An httpx client for OpenAI-compatible completion services
- SSE parsing for token streams
- Upstream error types
"""

from __future__ import annotations

from .client import UpstreamChatClient
from .exceptions import LLMError, StreamingError, UpstreamError
from .models import (
    NO_RESPONSE,
    ChatMessage,
    ImagePart,
    ImageURL,
    ProviderConfig,
    TextPart,
)

__all__ = [
    "NO_RESPONSE",
    "ChatMessage",
    "ImagePart",
    "ImageURL",
    # Exceptions
    "LLMError",
    "ProviderConfig",
    "StreamingError",
    "TextPart",
    # Client
    "UpstreamChatClient",
    "UpstreamError",
]
