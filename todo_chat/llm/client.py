"""
HTTP client for an OpenAI-compatible completion service (Ollama by default).

Exposes a blocking completion, a lazy token stream and model listing. The only
state kept between calls is the read-only provider configuration and the
pooled ``httpx.AsyncClient``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Sequence
from contextlib import aclosing
from typing import Any

import httpx

from .exceptions import StreamingError, UpstreamError
from .models import NO_RESPONSE, ChatMessage, ProviderConfig
from .streaming.models import SSEEventType
from .streaming.parser import StreamingParser, extract_delta_content

logger = logging.getLogger(__name__)

HTTP_OK = 200
STREAMING_CONTENT_TYPES = ("text/event-stream", "stream")


class UpstreamChatClient:
    """Chat completion client with request/response and streaming modes."""

    def __init__(
        self,
        config: ProviderConfig,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config
        self.client: httpx.AsyncClient = httpx.AsyncClient(
            base_url=config.base_url,
            headers={"Authorization": f"Bearer {config.api_key}"},
            timeout=httpx.Timeout(
                connect=config.connect_timeout,
                read=config.read_timeout,
                write=config.write_timeout,
                pool=config.pool_timeout,
            ),
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self.config.model

    def _build_payload(
        self, messages: Sequence[ChatMessage], *, stream: bool
    ) -> dict[str, Any]:
        return {
            "model": self.config.model,
            "messages": [message.to_payload() for message in messages],
            "stream": stream,
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "top_p": self.config.top_p,
        }

    def _error(
        self,
        message: str,
        status_code: int | None = None,
        error_cls: type[UpstreamError] = UpstreamError,
    ) -> UpstreamError:
        return error_cls(
            message,
            provider=self.config.provider,
            model=self.config.model,
            status_code=status_code,
        )

    async def complete_once(self, messages: Sequence[ChatMessage]) -> str:
        """Send the full history and return the first choice's text."""
        logger.info(
            f"Sending {len(messages)} message(s) to {self.config.provider} "
            f"model {self.config.model}"
        )
        try:
            response = await self.client.post(
                "/chat/completions", json=self._build_payload(messages, stream=False)
            )
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(f"Upstream returned {e.response.status_code}: {e}")
            raise self._error(
                f"Failed to get response from {self.config.provider}: {e!s}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error: {e}")
            raise self._error(
                f"Failed to get response from {self.config.provider}: {e!s}"
            ) from e
        except ValueError as e:
            logger.error(f"Unexpected response format: {e}")
            raise self._error(f"Unexpected response format: {e!s}") from e

        try:
            choices = result.get("choices") or []
            content = choices[0].get("message", {}).get("content") if choices else None
        except (AttributeError, TypeError) as e:
            logger.error(f"Unexpected response format: {e}")
            raise self._error(f"Unexpected response format: {e!s}") from e

        return content or NO_RESPONSE

    async def complete_stream(
        self, messages: Sequence[ChatMessage]
    ) -> AsyncGenerator[str]:
        """
        Yield text fragments as the upstream produces them.

        Fragments with empty or absent content are skipped. Any failure,
        before or after the first fragment, raises ``UpstreamError`` out of
        the generator. Closing the generator closes the upstream response.
        """
        logger.info(
            f"Streaming {len(messages)} message(s) from {self.config.provider} "
            f"model {self.config.model}"
        )
        parser = StreamingParser()
        try:
            async with self.client.stream(
                "POST",
                "/chat/completions",
                json=self._build_payload(messages, stream=True),
            ) as response:
                if response.status_code != HTTP_OK:
                    error_text = (await response.aread()).decode(errors="replace")
                    raise self._error(
                        f"Streaming API error {response.status_code}: {error_text}",
                        status_code=response.status_code,
                    )

                content_type = response.headers.get("content-type", "")
                if not any(t in content_type for t in STREAMING_CONTENT_TYPES):
                    raise self._error(
                        "Expected streaming response, got "
                        f"content-type: {content_type}"
                    )

                async with aclosing(parser.parse_sse_stream(response)) as chunks:
                    async for chunk in chunks:
                        if chunk.event_type == SSEEventType.COMPLETION:
                            break
                        if chunk.event_type == SSEEventType.MALFORMED:
                            raise self._error(
                                f"Invalid JSON in stream chunk: {chunk.error}",
                                error_cls=StreamingError,
                            )
                        if content := extract_delta_content(chunk.data):
                            yield content

        except UpstreamError:
            raise
        except httpx.HTTPError as e:
            logger.error(f"HTTP error during streaming: {e}")
            raise self._error(
                f"Failed to get response from {self.config.provider}: {e!s}",
                error_cls=StreamingError,
            ) from e
        finally:
            logger.debug(f"Upstream stream closed: {parser.get_stats()}")

    async def list_models(self) -> list[str]:
        """Return the upstream model ids, or the configured model on failure."""
        try:
            response = await self.client.get("/models")
            response.raise_for_status()
            data = response.json().get("data") or []
            models = [item["id"] for item in data if item.get("id")]
        except (httpx.HTTPError, ValueError, KeyError, AttributeError, TypeError) as e:
            logger.warning(f"Error listing models, using default: {e}")
            return [self.config.model]

        return models or [self.config.model]

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> UpstreamChatClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()
