"""Shared fixtures and fakes for the test modules."""

from __future__ import annotations

import copy
import json
from collections.abc import AsyncGenerator, Iterable
from typing import Any

import httpx
import pytest

from todo_chat.config import Configuration
from todo_chat.llm.exceptions import UpstreamError
from todo_chat.llm.models import ChatMessage

BASE_CONFIG: dict[str, Any] = {
    "server": {
        "host": "127.0.0.1",
        "port": 3100,
        "api_prefix": "/api",
        "cors": {"allow_origins": ["http://localhost:5173"]},
    },
    "llm": {
        "active": "ollama",
        "providers": {
            "ollama": {
                "base_url": "http://upstream.test/v1",
                "api_key": "ollama",
                "model": "gpt-oss",
                "temperature": 0.7,
                "top_p": 0.9,
                "max_tokens": 512,
                "http_client": {
                    "connect_timeout": 5.0,
                    "read_timeout": 5.0,
                    "write_timeout": 5.0,
                    "pool_timeout": 5.0,
                },
            }
        },
    },
    "repository": {"backend": "memory", "path": ":memory:", "seed_on_startup": False},
    "consumer": {"base_url": "http://test/api", "timeout": 5.0},
    "logging": {"level": "INFO"},
}


@pytest.fixture
def config_dict() -> dict[str, Any]:
    return copy.deepcopy(BASE_CONFIG)


@pytest.fixture
def configuration(config_dict, monkeypatch) -> Configuration:
    for env_key in [
        "OLLAMA_BASE_URL", "OLLAMA_MODEL", "OLLAMA_API_KEY",
        "PORT", "FRONTEND_URL", "TODO_DB_PATH",
    ]:
        monkeypatch.delenv(env_key, raising=False)
    return Configuration.from_dict(config_dict)


class ChunkedStream(httpx.AsyncByteStream):
    """Response body delivered in the given chunks, optionally failing at the end."""

    def __init__(self, chunks: Iterable[bytes], error: Exception | None = None):
        self.chunks = list(chunks)
        self.error = error

    async def __aiter__(self):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error


def completion_chunk(content: str | None) -> dict[str, Any]:
    delta = {} if content is None else {"content": content}
    return {"choices": [{"index": 0, "delta": delta}]}


def upstream_sse(fragments: Iterable[str | None], done: bool = True) -> bytes:
    """OpenAI-style SSE body for the given delta contents."""
    lines = [
        f"data: {json.dumps(completion_chunk(fragment))}\n\n" for fragment in fragments
    ]
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


class FakeUpstream:
    """Stand-in for UpstreamChatClient used by relay and API tests."""

    def __init__(
        self,
        fragments: list[str] | None = None,
        *,
        fail_after: int | None = None,
        once_text: str = "Hello!",
        fail_once: bool = False,
        models: list[str] | None = None,
    ):
        self.fragments = fragments if fragments is not None else ["Hel", "lo!"]
        self.fail_after = fail_after
        self.once_text = once_text
        self.fail_once = fail_once
        self.models = models or ["gpt-oss"]
        self.model = "gpt-oss"
        self.stream_calls: list[list[ChatMessage]] = []
        self.once_calls: list[list[ChatMessage]] = []
        self.stream_closed = False

    async def complete_stream(self, messages) -> AsyncGenerator[str]:
        self.stream_calls.append(list(messages))
        try:
            for index, fragment in enumerate(self.fragments):
                if self.fail_after is not None and index == self.fail_after:
                    raise UpstreamError("upstream exploded", status_code=502)
                yield fragment
            if self.fail_after is not None and self.fail_after >= len(self.fragments):
                raise UpstreamError("upstream exploded", status_code=502)
        finally:
            self.stream_closed = True

    async def complete_once(self, messages) -> str:
        self.once_calls.append(list(messages))
        if self.fail_once:
            raise UpstreamError("upstream exploded", status_code=503)
        return self.once_text

    async def list_models(self) -> list[str]:
        return list(self.models)

    async def close(self) -> None:
        return None
