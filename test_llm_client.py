"""
Tests for the upstream chat client against a mocked OpenAI-compatible API.
"""

import json

import httpx
import pytest

from conftest import ChunkedStream, completion_chunk, upstream_sse
from todo_chat.llm import (
    NO_RESPONSE,
    ChatMessage,
    ProviderConfig,
    StreamingError,
    UpstreamChatClient,
    UpstreamError,
)

SSE_HEADERS = {"content-type": "text/event-stream"}


def make_client(handler) -> UpstreamChatClient:
    config = ProviderConfig(base_url="http://upstream.test/v1", model="gpt-oss")
    return UpstreamChatClient(config, transport=httpx.MockTransport(handler))


def hi() -> list[ChatMessage]:
    return [ChatMessage(role="user", content="hi")]


class TestCompleteOnce:

    @pytest.mark.asyncio
    async def test_returns_first_choice_and_sends_sampling_config(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["auth"] = request.headers["authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "choices": [{"message": {"role": "assistant", "content": "Hello!"}}]
            })

        async with make_client(handler) as client:
            assert await client.complete_once(hi()) == "Hello!"

        assert seen["path"] == "/v1/chat/completions"
        assert seen["auth"] == "Bearer ollama"
        body = seen["body"]
        assert body["model"] == "gpt-oss"
        assert body["stream"] is False
        assert body["temperature"] == 0.7
        assert body["top_p"] == 0.9
        assert body["max_tokens"] == 512
        assert body["messages"] == [{"role": "user", "content": "hi"}]

    @pytest.mark.asyncio
    async def test_image_parts_forwarded_unchanged(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": "a cat"}}]})

        message = ChatMessage.model_validate({
            "role": "user",
            "content": [
                {"type": "text", "text": "what is this?"},
                {"type": "image_url", "image_url": {"url": "data:image/png;base64,AAAA"}},
            ],
        })
        async with make_client(handler) as client:
            await client.complete_once([message])

        assert seen["body"]["messages"][0]["content"][1] == {
            "type": "image_url",
            "image_url": {"url": "data:image/png;base64,AAAA"},
        }

    @pytest.mark.asyncio
    async def test_empty_content_returns_sentinel(self):
        def handler(request):
            return httpx.Response(200, json={"choices": [{"message": {"content": None}}]})

        async with make_client(handler) as client:
            assert await client.complete_once(hi()) == NO_RESPONSE

    @pytest.mark.asyncio
    async def test_no_choices_returns_sentinel(self):
        def handler(request):
            return httpx.Response(200, json={"choices": []})

        async with make_client(handler) as client:
            assert await client.complete_once(hi()) == NO_RESPONSE

    @pytest.mark.asyncio
    async def test_http_error_raises_upstream_error_with_status(self):
        def handler(request):
            return httpx.Response(404, json={"error": "model not found"})

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError) as exc_info:
                await client.complete_once(hi())

        assert exc_info.value.status_code == 404
        assert exc_info.value.model == "gpt-oss"
        assert exc_info.value.provider == "ollama"

    @pytest.mark.asyncio
    async def test_connection_failure_raises_upstream_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError, match="connection refused"):
                await client.complete_once(hi())


class TestCompleteStream:

    @pytest.mark.asyncio
    async def test_yields_fragments_in_order_skipping_empty(self):
        body = upstream_sse(["Hel", "", None, "lo!"])

        def handler(request):
            assert json.loads(request.content)["stream"] is True
            return httpx.Response(200, headers=SSE_HEADERS, content=body)

        async with make_client(handler) as client:
            fragments = [f async for f in client.complete_stream(hi())]

        assert fragments == ["Hel", "lo!"]

    @pytest.mark.asyncio
    async def test_split_lines_and_heartbeats(self):
        body = b": keep-alive\n\ndata: ping\n\n" + upstream_sse(["Hel", "lo!"])
        chunks = [body[i:i + 7] for i in range(0, len(body), 7)]

        def handler(request):
            return httpx.Response(200, headers=SSE_HEADERS, stream=ChunkedStream(chunks))

        async with make_client(handler) as client:
            fragments = [f async for f in client.complete_stream(hi())]

        assert fragments == ["Hel", "lo!"]

    @pytest.mark.asyncio
    async def test_stops_at_done_marker(self):
        body = upstream_sse(["a"]) + upstream_sse(["never"], done=False)

        def handler(request):
            return httpx.Response(200, headers=SSE_HEADERS, content=body)

        async with make_client(handler) as client:
            fragments = [f async for f in client.complete_stream(hi())]

        assert fragments == ["a"]

    @pytest.mark.asyncio
    async def test_end_of_body_without_done_marker(self):
        def handler(request):
            return httpx.Response(
                200, headers=SSE_HEADERS, content=upstream_sse(["x", "y"], done=False)
            )

        async with make_client(handler) as client:
            fragments = [f async for f in client.complete_stream(hi())]

        assert fragments == ["x", "y"]

    @pytest.mark.asyncio
    async def test_non_200_fails_before_any_fragment(self):
        def handler(request):
            return httpx.Response(500, text="model crashed")

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError, match="500") as exc_info:
                async for _ in client.complete_stream(hi()):
                    pass

        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_wrong_content_type_rejected(self):
        def handler(request):
            return httpx.Response(200, json=completion_chunk("hi"))

        async with make_client(handler) as client:
            with pytest.raises(UpstreamError, match="Expected streaming response"):
                async for _ in client.complete_stream(hi()):
                    pass

    @pytest.mark.asyncio
    async def test_mid_stream_failure_fails_the_sequence(self):
        stream = ChunkedStream(
            [upstream_sse(["Hel"], done=False)], error=httpx.ReadError("reset by peer")
        )

        def handler(request):
            return httpx.Response(200, headers=SSE_HEADERS, stream=stream)

        received = []
        async with make_client(handler) as client:
            with pytest.raises(StreamingError, match="reset by peer"):
                async for fragment in client.complete_stream(hi()):
                    received.append(fragment)

        assert received == ["Hel"]

    @pytest.mark.asyncio
    async def test_malformed_chunk_is_a_streaming_error(self):
        body = upstream_sse(["ok"], done=False) + b"data: {not json\n\n"

        def handler(request):
            return httpx.Response(200, headers=SSE_HEADERS, content=body)

        async with make_client(handler) as client:
            with pytest.raises(StreamingError, match="Invalid JSON"):
                async for _ in client.complete_stream(hi()):
                    pass

    @pytest.mark.asyncio
    async def test_stream_and_once_agree_for_deterministic_upstream(self):
        fragments = ["The ", "quick ", "brown ", "fox"]

        def handler(request):
            if json.loads(request.content)["stream"]:
                return httpx.Response(200, headers=SSE_HEADERS, content=upstream_sse(fragments))
            return httpx.Response(200, json={
                "choices": [{"message": {"content": "".join(fragments)}}]
            })

        async with make_client(handler) as client:
            streamed = "".join([f async for f in client.complete_stream(hi())])
            once = await client.complete_once(hi())

        assert streamed == once == "The quick brown fox"


class TestListModels:

    @pytest.mark.asyncio
    async def test_returns_model_ids(self):
        def handler(request):
            assert request.url.path == "/v1/models"
            return httpx.Response(200, json={
                "object": "list",
                "data": [{"id": "gpt-oss"}, {"id": "llama3.2-vision"}],
            })

        async with make_client(handler) as client:
            assert await client.list_models() == ["gpt-oss", "llama3.2-vision"]

    @pytest.mark.asyncio
    async def test_unreachable_upstream_falls_back_to_default(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        async with make_client(handler) as client:
            assert await client.list_models() == ["gpt-oss"]

    @pytest.mark.asyncio
    async def test_garbage_response_falls_back_to_default(self):
        def handler(request):
            return httpx.Response(200, text="<html>not json</html>")

        async with make_client(handler) as client:
            assert await client.list_models() == ["gpt-oss"]
