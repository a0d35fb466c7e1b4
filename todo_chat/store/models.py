# todo_chat/store/models.py
from __future__ import annotations

import random
import string
import time
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TodoStatus = Literal["pending", "in-progress", "completed"]

_ID_ALPHABET = string.digits + string.ascii_lowercase


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_ID_ALPHABET[remainder])
    return "".join(reversed(digits)) or "0"


def generate_id() -> str:
    """Base-36 millisecond timestamp followed by six random characters."""
    now = _to_base36(int(time.time() * 1000))
    suffix = "".join(random.choices(_ID_ALPHABET, k=6))
    return now + suffix


class StoreModel(BaseModel):
    """Base model: snake_case in Python, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Category(StoreModel):
    id: str = Field(default_factory=generate_id)
    name: str


class CategoryCreate(StoreModel):
    name: str

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name is required")
        return value


class Todo(StoreModel):
    id: str = Field(default_factory=generate_id)
    name: str
    status: TodoStatus = "pending"
    category_id: str
    due_date: datetime | None = None


class TodoCreate(StoreModel):
    """Input for a new todo; name and categoryId are required."""
    name: str
    status: TodoStatus = "pending"
    category_id: str
    due_date: datetime | None = None

    @field_validator("name", "category_id")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Name and categoryId are required")
        return value


class TodoUpdate(StoreModel):
    """Partial update; only fields that were sent are applied."""
    name: str | None = None
    status: TodoStatus | None = None
    category_id: str | None = None
    due_date: datetime | None = None

    # Only dueDate may be cleared; the other fields are omitted, not nulled.
    @field_validator("name", "status", "category_id", mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("Field cannot be null")
        return value

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, value: str | None) -> str | None:
        if value is None:
            return value
        value = value.strip()
        if not value:
            raise ValueError("Todo name cannot be empty")
        return value

    def changes(self) -> dict:
        """Fields explicitly set by the caller, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)
