"""
Chat relay and its client.

- ``frames``: event-channel frame model and wire encoding
- ``relay``: server-side relay of upstream fragments into frames
- ``consumer``: client that reconstructs frames from the byte stream
- ``cli``: terminal chat front-end built on the consumer
"""

from .consumer import ConsumerState, StreamConsumer
from .frames import StreamEvent, StreamEventType
from .relay import ChatRelay, validate_messages

__all__ = [
    "ChatRelay",
    "ConsumerState",
    "StreamConsumer",
    "StreamEvent",
    "StreamEventType",
    "validate_messages",
]
