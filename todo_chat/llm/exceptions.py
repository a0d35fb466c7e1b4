"""
Error handling for upstream LLM operations.

Errors carry the provider, model and (when known) the upstream HTTP status so
callers can log them with full context before translating them for clients.
"""

from __future__ import annotations


class LLMError(Exception):
    """Base LLM error with rich context."""

    def __init__(
        self,
        message: str,
        provider: str = "unknown",
        model: str = "unknown",
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code
        self.response_data = response_data or {}


class UpstreamError(LLMError):
    """The completion service rejected the call or could not be reached."""
    pass


class StreamingError(UpstreamError):
    """The stream failed after it was opened (bad chunk, dropped connection)."""
    pass
