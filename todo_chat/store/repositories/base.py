# todo_chat/store/repositories/base.py
from __future__ import annotations

from typing import Protocol

from todo_chat.store.models import (
    Category,
    CategoryCreate,
    Todo,
    TodoCreate,
    TodoUpdate,
)


class TodoRepository(Protocol):
    """
    Interface for storing and retrieving todos and categories.
    Lookups return None and deletions return False when the row is absent.
    """

    async def list_todos(self) -> list[Todo]:
        """
        Return all todos in insertion order.
        """
        ...

    async def get_todo(self, todo_id: str) -> Todo | None:
        ...

    async def create_todo(self, data: TodoCreate) -> Todo:
        ...

    async def update_todo(self, todo_id: str, updates: TodoUpdate) -> Todo | None:
        """
        Apply the fields set on ``updates``; None if the todo does not exist.
        """
        ...

    async def delete_todo(self, todo_id: str) -> bool:
        ...

    async def clear_completed(self) -> int:
        """
        Delete every completed todo and return how many were removed.
        """
        ...

    async def list_categories(self) -> list[Category]:
        ...

    async def get_category(self, category_id: str) -> Category | None:
        ...

    async def create_category(self, data: CategoryCreate) -> Category:
        ...

    async def delete_category(self, category_id: str) -> bool:
        ...

    async def is_empty(self) -> bool:
        """
        True when neither todos nor categories are stored.
        """
        ...

    async def close(self) -> None:
        ...
