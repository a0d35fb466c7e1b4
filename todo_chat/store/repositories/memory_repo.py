# todo_chat/store/repositories/memory_repo.py
from __future__ import annotations

import asyncio
import logging

from todo_chat.store.models import (
    Category,
    CategoryCreate,
    Todo,
    TodoCreate,
    TodoUpdate,
)
from todo_chat.store.repositories.base import TodoRepository

logger = logging.getLogger(__name__)


class InMemoryRepo(TodoRepository):
    """
    Process-local repository. Each instance owns its own rows; construct one
    per application and inject it where needed.
    """

    def __init__(self) -> None:
        self._todos: dict[str, Todo] = {}
        self._categories: dict[str, Category] = {}
        self._lock = asyncio.Lock()

    async def list_todos(self) -> list[Todo]:
        return [todo.model_copy() for todo in self._todos.values()]

    async def get_todo(self, todo_id: str) -> Todo | None:
        todo = self._todos.get(todo_id)
        return todo.model_copy() if todo else None

    async def create_todo(self, data: TodoCreate) -> Todo:
        todo = Todo(**data.model_dump())
        async with self._lock:
            self._todos[todo.id] = todo
        logger.info(f"Todo created: {todo.id}")
        return todo.model_copy()

    async def update_todo(self, todo_id: str, updates: TodoUpdate) -> Todo | None:
        async with self._lock:
            existing = self._todos.get(todo_id)
            if existing is None:
                logger.warning(f"Todo with ID {todo_id} not found.")
                return None
            updated = existing.model_copy(update=updates.changes())
            self._todos[todo_id] = updated
        return updated.model_copy()

    async def delete_todo(self, todo_id: str) -> bool:
        async with self._lock:
            return self._todos.pop(todo_id, None) is not None

    async def clear_completed(self) -> int:
        async with self._lock:
            completed = [
                todo_id for todo_id, todo in self._todos.items()
                if todo.status == "completed"
            ]
            for todo_id in completed:
                del self._todos[todo_id]
        return len(completed)

    async def list_categories(self) -> list[Category]:
        return [category.model_copy() for category in self._categories.values()]

    async def get_category(self, category_id: str) -> Category | None:
        category = self._categories.get(category_id)
        return category.model_copy() if category else None

    async def create_category(self, data: CategoryCreate) -> Category:
        category = Category(name=data.name)
        async with self._lock:
            self._categories[category.id] = category
        logger.info(f"Category created: {category.id}")
        return category.model_copy()

    async def delete_category(self, category_id: str) -> bool:
        async with self._lock:
            return self._categories.pop(category_id, None) is not None

    async def is_empty(self) -> bool:
        return not self._todos and not self._categories

    async def close(self) -> None:
        return None

    async def __aenter__(self) -> InMemoryRepo:
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
