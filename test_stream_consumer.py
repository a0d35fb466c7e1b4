"""
Tests for the stream consumer: frame reconstruction and the callback driver.
"""

import httpx
import pytest

from conftest import ChunkedStream, FakeUpstream
from todo_chat.api import create_app
from todo_chat.chat.consumer import ConsumerState, StreamConsumer, decode_frame_line
from todo_chat.chat.frames import StreamEvent, StreamEventType
from todo_chat.llm.exceptions import StreamingError
from todo_chat.store import InMemoryRepo

SSE_HEADERS = {"content-type": "text/event-stream"}
HI = [{"role": "user", "content": "hi"}]


def frames(*events: StreamEvent) -> bytes:
    return "".join(event.encode() for event in events).encode()


def consumer_for(body: bytes, chunk_size: int | None = None, error=None) -> StreamConsumer:
    size = chunk_size or max(len(body), 1)
    chunks = [body[i:i + size] for i in range(0, len(body), size)]

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/chat/stream"
        return httpx.Response(200, headers=SSE_HEADERS, stream=ChunkedStream(chunks, error))

    return StreamConsumer("http://relay.test/api", transport=httpx.MockTransport(handler))


class Recorder:
    """Collects callback invocations in order."""

    def __init__(self):
        self.calls: list[tuple] = []

    def on_chunk(self, fragment):
        self.calls.append(("chunk", fragment))

    def on_complete(self):
        self.calls.append(("complete",))

    def on_error(self, error):
        self.calls.append(("error", error))

    @property
    def text(self) -> str:
        return "".join(c[1] for c in self.calls if c[0] == "chunk")

    @property
    def terminals(self) -> list[tuple]:
        return [c for c in self.calls if c[0] != "chunk"]

    async def run(self, consumer: StreamConsumer, messages=HI) -> ConsumerState:
        return await consumer.stream_chat(
            messages, self.on_chunk, self.on_complete, self.on_error
        )


HELLO = frames(
    StreamEvent.connected(),
    StreamEvent.chunk("Hel"),
    StreamEvent.chunk("lo!"),
    StreamEvent.done(),
)


class TestDecodeFrameLine:

    def test_content_frame(self):
        assert decode_frame_line('data: {"type": "content", "content": "x"}') == \
            StreamEvent.chunk("x")

    @pytest.mark.parametrize("line", [
        "",
        ": keep-alive",
        "data: not json",
        "data: [1, 2]",
        'data: {"type": "mystery"}',
        'event: {"type": "done"}',
    ])
    def test_noise_is_ignored(self, line):
        assert decode_frame_line(line) is None

    def test_error_without_message_uses_default(self):
        event = decode_frame_line('data: {"type": "error"}')
        assert event.type == StreamEventType.ERROR
        assert event.error == "Unknown error"


class TestStreamChat:

    @pytest.mark.asyncio
    async def test_hello_scenario(self):
        recorder = Recorder()
        async with consumer_for(HELLO) as consumer:
            state = await recorder.run(consumer)

        assert state == ConsumerState.COMPLETED
        assert recorder.calls == [("chunk", "Hel"), ("chunk", "lo!"), ("complete",)]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("chunk_size", [1, 2, 3, 7, 16, 64])
    async def test_result_independent_of_chunk_boundaries(self, chunk_size):
        body = frames(
            StreamEvent.connected(),
            StreamEvent.chunk("café "),
            StreamEvent.chunk("naïve ✓ "),
            StreamEvent.chunk("日本語"),
            StreamEvent.done(),
        )
        recorder = Recorder()
        async with consumer_for(body, chunk_size) as consumer:
            await recorder.run(consumer)

        assert recorder.text == "café naïve ✓ 日本語"
        assert recorder.terminals == [("complete",)]

    @pytest.mark.asyncio
    async def test_frames_after_done_are_ignored(self):
        body = HELLO + frames(StreamEvent.chunk("late"), StreamEvent.failure("late"))
        recorder = Recorder()
        async with consumer_for(body) as consumer:
            await recorder.run(consumer)

        assert recorder.text == "Hello!"
        assert recorder.terminals == [("complete",)]

    @pytest.mark.asyncio
    async def test_error_frame_reports_message(self):
        body = frames(
            StreamEvent.connected(),
            StreamEvent.chunk("Hel"),
            StreamEvent.failure("Failed to stream response from AI model"),
        )
        recorder = Recorder()
        async with consumer_for(body) as consumer:
            state = await recorder.run(consumer)

        assert state == ConsumerState.FAILED
        assert recorder.calls == [
            ("chunk", "Hel"),
            ("error", "Failed to stream response from AI model"),
        ]

    @pytest.mark.asyncio
    async def test_error_frame_without_message(self):
        body = b'data: {"type": "connected"}\n\ndata: {"type": "error"}\n\n'
        recorder = Recorder()
        async with consumer_for(body) as consumer:
            await recorder.run(consumer)

        assert recorder.terminals == [("error", "Unknown error")]

    @pytest.mark.asyncio
    async def test_end_without_terminal_frame_completes(self):
        body = frames(StreamEvent.connected(), StreamEvent.chunk("partial"))
        recorder = Recorder()
        async with consumer_for(body) as consumer:
            state = await recorder.run(consumer)

        assert state == ConsumerState.COMPLETED
        assert recorder.calls == [("chunk", "partial"), ("complete",)]

    @pytest.mark.asyncio
    async def test_unparseable_lines_are_skipped(self):
        body = b"data: {broken\n\n: comment\n\n" + HELLO
        recorder = Recorder()
        async with consumer_for(body, 5) as consumer:
            await recorder.run(consumer)

        assert recorder.text == "Hello!"
        assert recorder.terminals == [("complete",)]

    @pytest.mark.asyncio
    async def test_final_frame_without_trailing_newline(self):
        body = frames(StreamEvent.chunk("x")) + b'data: {"type": "done"}'
        recorder = Recorder()
        async with consumer_for(body) as consumer:
            await recorder.run(consumer)

        assert recorder.calls == [("chunk", "x"), ("complete",)]

    @pytest.mark.asyncio
    async def test_transport_failure_mid_stream(self):
        body = frames(StreamEvent.connected(), StreamEvent.chunk("Hel"))
        recorder = Recorder()
        async with consumer_for(body, error=httpx.ReadError("connection reset")) as consumer:
            state = await recorder.run(consumer)

        assert state == ConsumerState.FAILED
        assert recorder.calls == [("chunk", "Hel"), ("error", "connection reset")]

    @pytest.mark.asyncio
    async def test_connection_refused(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        recorder = Recorder()
        async with StreamConsumer(
            "http://relay.test/api", transport=httpx.MockTransport(handler)
        ) as consumer:
            state = await recorder.run(consumer)

        assert state == ConsumerState.FAILED
        assert recorder.calls == [("error", "connection refused")]

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        def handler(request):
            return httpx.Response(500, json={"error": "Something went wrong!"})

        recorder = Recorder()
        async with StreamConsumer(
            "http://relay.test/api", transport=httpx.MockTransport(handler)
        ) as consumer:
            await recorder.run(consumer)

        assert recorder.calls == [("error", "HTTP error! status: 500")]

    @pytest.mark.asyncio
    async def test_async_callbacks_supported(self):
        received = []

        async def on_chunk(fragment):
            received.append(fragment)

        async def on_complete():
            received.append("<done>")

        async def on_error(error):
            received.append(f"<error {error}>")

        async with consumer_for(HELLO) as consumer:
            await consumer.stream_chat(HI, on_chunk, on_complete, on_error)

        assert received == ["Hel", "lo!", "<done>"]


@pytest.mark.asyncio
async def test_iter_events_raises_on_http_error():
    def handler(request):
        return httpx.Response(400, json={"error": "Messages array is required"})

    async with StreamConsumer(
        "http://relay.test/api", transport=httpx.MockTransport(handler)
    ) as consumer:
        with pytest.raises(StreamingError) as exc_info:
            async for _ in consumer.iter_events([]):
                pass

    assert exc_info.value.status_code == 400


class TestAgainstRelay:
    """Consumer talking to the real application in-process."""

    @staticmethod
    def consumer(configuration, upstream: FakeUpstream) -> StreamConsumer:
        app = create_app(configuration, llm_client=upstream, repo=InMemoryRepo())
        return StreamConsumer("http://test/api", transport=httpx.ASGITransport(app=app))

    @pytest.mark.asyncio
    async def test_streams_reply(self, configuration):
        upstream = FakeUpstream(["Hel", "lo!"])
        recorder = Recorder()
        async with self.consumer(configuration, upstream) as consumer:
            await recorder.run(consumer)

        assert recorder.calls == [("chunk", "Hel"), ("chunk", "lo!"), ("complete",)]
        assert upstream.stream_calls[0][0].content == "hi"

    @pytest.mark.asyncio
    async def test_upstream_failure_reaches_on_error(self, configuration):
        recorder = Recorder()
        async with self.consumer(
            configuration, FakeUpstream(["Hel", "lo!"], fail_after=1)
        ) as consumer:
            await recorder.run(consumer)

        assert recorder.calls == [
            ("chunk", "Hel"),
            ("error", "Failed to stream response from AI model"),
        ]

    @pytest.mark.asyncio
    async def test_empty_messages_rejected(self, configuration):
        upstream = FakeUpstream()
        recorder = Recorder()
        async with self.consumer(configuration, upstream) as consumer:
            await recorder.run(consumer, messages=[])

        assert recorder.calls == [("error", "HTTP error! status: 400")]
        assert upstream.stream_calls == []

    @pytest.mark.asyncio
    async def test_send_chat_and_models(self, configuration):
        upstream = FakeUpstream(once_text="Hi there", models=["gpt-oss", "llava"])
        async with self.consumer(configuration, upstream) as consumer:
            assert await consumer.send_chat(HI) == "Hi there"
            assert await consumer.list_models() == ["gpt-oss", "llava"]


class TestCallbackFailures:

    @pytest.mark.asyncio
    async def test_chunk_callback_failure_reported_through_on_error(self):
        recorder = Recorder()

        def on_chunk(fragment):
            raise RuntimeError("render failed")

        async with consumer_for(HELLO) as consumer:
            state = await consumer.stream_chat(
                HI, on_chunk, recorder.on_complete, recorder.on_error
            )

        assert state == ConsumerState.FAILED
        assert recorder.calls == [("error", "render failed")]

    @pytest.mark.asyncio
    async def test_terminal_callback_failure_propagates(self):
        recorder = Recorder()

        def on_complete():
            raise RuntimeError("caller bug")

        async with consumer_for(HELLO) as consumer:
            with pytest.raises(RuntimeError, match="caller bug"):
                await consumer.stream_chat(
                    HI, recorder.on_chunk, on_complete, recorder.on_error
                )

        assert recorder.calls == [("chunk", "Hel"), ("chunk", "lo!")]
