"""Request-scoped accessors for objects created once at startup."""

from __future__ import annotations

import json
from typing import Any, TypeVar

from fastapi import Request
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from todo_chat.chat.relay import ChatRelay
from todo_chat.exceptions import ValidationError
from todo_chat.store.repositories.base import TodoRepository

ModelT = TypeVar("ModelT", bound=BaseModel)


async def get_repo(request: Request) -> TodoRepository:
    """Dependency returning the injected todo repository."""
    return request.app.state.repo


async def get_relay(request: Request) -> ChatRelay:
    """Dependency returning the chat relay bound to the upstream client."""
    return request.app.state.relay


async def read_json(request: Request, message: str) -> Any:
    """Decode the request body, rejecting anything that is not JSON."""
    body = await request.body()
    if not body:
        raise ValidationError(message)
    try:
        return json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError(message) from e


async def parse_body(request: Request, model: type[ModelT], message: str) -> ModelT:
    """Decode and validate the body as ``model``; any failure is a 400."""
    payload = await read_json(request, message)
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(message) from e


def dump(model: BaseModel) -> dict[str, Any]:
    """JSON-ready dict using the camelCase wire names."""
    return model.model_dump(mode="json", by_alias=True)
