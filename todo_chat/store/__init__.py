"""
Todo and category persistence.

Repositories are explicit objects created once at startup and injected into
the HTTP handlers; there is no module-level store.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

from todo_chat.store.models import (
    Category,
    CategoryCreate,
    Todo,
    TodoCreate,
    TodoStatus,
    TodoUpdate,
)
from todo_chat.store.repositories import AsyncSqlRepo, InMemoryRepo, TodoRepository

logger = logging.getLogger(__name__)

__all__ = [
    "AsyncSqlRepo",
    "Category",
    "CategoryCreate",
    "InMemoryRepo",
    "Todo",
    "TodoCreate",
    "TodoRepository",
    "TodoStatus",
    "TodoUpdate",
    "create_repository",
    "seed_repository",
]


def create_repository(repo_config: dict[str, Any]) -> TodoRepository:
    """Create repository instance based on configuration."""
    if repo_config["backend"] == "sqlite":
        db_path = repo_config.get("path", "todos.db")
        logger.info(f"Using AsyncSqlRepo with database path: {db_path}")
        return AsyncSqlRepo(db_path)

    logger.info("Using InMemoryRepo")
    return InMemoryRepo()


async def seed_repository(repo: TodoRepository) -> bool:
    """
    Insert the sample categories and todos when the store is empty.

    Returns True if seed data was written.
    """
    if not await repo.is_empty():
        return False

    school = await repo.create_category(CategoryCreate(name="School"))
    await repo.create_category(CategoryCreate(name="Personal"))

    samples: list[tuple[str, TodoStatus, datetime]] = [
        ("Mow the Lawn", "pending", datetime(2025, 10, 10)),
        ("Finish my homework", "in-progress", datetime(2025, 10, 8)),
        ("Watch class video", "completed", datetime(2025, 10, 3)),
    ]
    for name, status, due_date in samples:
        await repo.create_todo(
            TodoCreate(
                name=name, status=status, category_id=school.id, due_date=due_date
            )
        )

    logger.info("Seed data initialized")
    return True
