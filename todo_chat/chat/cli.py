"""
Terminal chat front-end for the relay.

``ChatSession`` keeps the conversation history and the in-progress reply;
``main`` wraps it in a prompt loop that prints fragments as they arrive.
"""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Callable

import httpx

from todo_chat.config import Configuration
from todo_chat.llm.models import ChatMessage, ImagePart, ImageURL, TextPart
from todo_chat.logging_utils import setup_logging

from .consumer import StreamConsumer

COMMANDS_HELP = "Commands: /models, /image <url> <text>, /reset, /quit"


class SessionBusyError(RuntimeError):
    """Raised when a message is sent while a reply is still streaming."""


class ChatSession:
    """Conversation state for one front-end instance.

    At most one reply streams at a time: ``busy`` is set before the request
    and cleared only from the completion or error callback.
    """

    def __init__(self, consumer: StreamConsumer, system_prompt: str | None = None):
        self.consumer = consumer
        self.system_prompt = system_prompt
        self.history: list[ChatMessage] = []
        self.busy = False
        self.pending_reply: str | None = None
        self.last_error: str | None = None
        self.reset()

    def reset(self) -> None:
        """Drop the conversation, keeping the system prompt if any."""
        if self.busy:
            raise SessionBusyError("Cannot reset while a reply is streaming")
        self.history = []
        if self.system_prompt:
            self.history.append(ChatMessage(role="system", content=self.system_prompt))
        self.last_error = None

    @staticmethod
    def build_user_message(text: str, image_url: str | None = None) -> ChatMessage:
        if image_url is None:
            return ChatMessage(role="user", content=text)
        parts: list[TextPart | ImagePart] = []
        if text:
            parts.append(TextPart(text=text))
        parts.append(ImagePart(image_url=ImageURL(url=image_url)))
        return ChatMessage(role="user", content=parts)

    async def send(
        self,
        text: str,
        *,
        image_url: str | None = None,
        on_fragment: Callable[[str], None] | None = None,
    ) -> str | None:
        """
        Send a user turn and stream the reply.

        Returns the full reply, or None if the input was blank or the stream
        failed (the error is kept in ``last_error``). The user turn stays in
        the history either way; a failed partial reply is discarded.
        """
        text = text.strip()
        if not text and image_url is None:
            return None
        if self.busy:
            raise SessionBusyError("A reply is already streaming")

        self.history.append(self.build_user_message(text, image_url))
        self.busy = True
        self.pending_reply = ""
        self.last_error = None
        reply: str | None = None

        def on_chunk(fragment: str) -> None:
            self.pending_reply = (self.pending_reply or "") + fragment
            if on_fragment is not None:
                on_fragment(fragment)

        def on_complete() -> None:
            nonlocal reply
            reply = self.pending_reply or ""
            self.history.append(ChatMessage(role="assistant", content=reply))
            self.pending_reply = None
            self.busy = False

        def on_error(error: str) -> None:
            self.pending_reply = None
            self.last_error = error
            self.busy = False

        await self.consumer.stream_chat(list(self.history), on_chunk, on_complete, on_error)
        return reply


def _parse_image_command(line: str) -> tuple[str, str | None]:
    _, _, rest = line.partition(" ")
    url, _, text = rest.strip().partition(" ")
    return text, url or None


async def run_chat(consumer: StreamConsumer) -> None:
    """Interactive prompt loop."""
    session = ChatSession(consumer)
    print(f"Chat ready. {COMMANDS_HELP}")

    while True:
        try:
            line = await asyncio.to_thread(input, "you> ")
        except EOFError:
            break

        command = line.strip()
        if not command:
            continue
        if command == "/quit":
            break
        if command == "/reset":
            session.reset()
            print("(conversation cleared)")
            continue
        if command == "/models":
            try:
                models = await consumer.list_models()
            except httpx.HTTPError as e:
                print(f"[error] Failed to list models: {e}", file=sys.stderr)
                continue
            print("models: " + ", ".join(models))
            continue

        text, image_url = command, None
        if command.startswith("/image "):
            text, image_url = _parse_image_command(command)

        print("assistant> ", end="", flush=True)
        reply = await session.send(
            text,
            image_url=image_url,
            on_fragment=lambda fragment: print(fragment, end="", flush=True),
        )
        print()
        if reply is None and session.last_error:
            print(f"[error] {session.last_error}", file=sys.stderr)


async def main() -> None:
    config = Configuration()
    setup_logging({"level": "WARNING"})
    consumer_config = config.get_consumer_config()
    async with StreamConsumer(
        consumer_config["base_url"], timeout=consumer_config["timeout"]
    ) as consumer:
        await run_chat(consumer)


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
