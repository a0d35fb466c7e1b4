"""Chat endpoints: streaming relay, non-streaming fallback and model listing."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse

from todo_chat.chat.relay import (
    CHAT_FAILED_MESSAGE,
    MESSAGES_REQUIRED,
    ChatRelay,
    validate_messages,
)
from todo_chat.exceptions import HTTP_INTERNAL_ERROR
from todo_chat.llm.exceptions import UpstreamError
from todo_chat.logging_utils import ErrorHandler

from .dependencies import get_relay, read_json

router = APIRouter(prefix="/chat", tags=["chat"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.post("/stream")
async def stream_chat_message(
    request: Request, relay: ChatRelay = Depends(get_relay)
) -> StreamingResponse:
    """
    Stream the assistant reply as Server-Sent Events.

    Validation happens before the response starts; once the first frame is
    written, failures are reported only as an in-band ``error`` frame.
    """
    payload = await read_json(request, MESSAGES_REQUIRED)
    messages = validate_messages(payload)

    return StreamingResponse(
        relay.stream_frames(messages),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


@router.post("")
async def send_chat_message(
    request: Request, relay: ChatRelay = Depends(get_relay)
) -> Any:
    """Non-streaming fallback returning ``{message: {role, content}}``."""
    payload = await read_json(request, MESSAGES_REQUIRED)
    messages = validate_messages(payload)

    try:
        return await relay.complete(messages)
    except UpstreamError as e:
        ErrorHandler.log_error(e, "chat_complete", {"status_code": e.status_code})
        return JSONResponse(
            status_code=HTTP_INTERNAL_ERROR, content={"error": CHAT_FAILED_MESSAGE}
        )


@router.get("/models")
async def get_available_models(relay: ChatRelay = Depends(get_relay)) -> Any:
    """List upstream models; falls back to the configured default."""
    return await relay.list_models()
