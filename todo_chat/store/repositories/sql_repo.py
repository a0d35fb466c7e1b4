# todo_chat/store/repositories/sql_repo.py
from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import Any

import aiosqlite

from todo_chat.store.models import (
    Category,
    CategoryCreate,
    Todo,
    TodoCreate,
    TodoUpdate,
)
from todo_chat.store.repositories.base import TodoRepository

logger = logging.getLogger(__name__)

_TODO_COLUMNS = "id, name, status, category_id, due_date"
_UPDATABLE_COLUMNS = ("name", "status", "category_id", "due_date")


class AsyncSqlRepo(TodoRepository):
    """
    SQL implementation of TodoRepository.
    Uses SQLite through aiosqlite; swap the driver when moving to another
    database.
    """

    def __init__(self, db_path: str = "todos.db"):
        self.db_path = db_path
        self._init_lock = asyncio.Lock()
        self._initialized = False
        self._connection_lock = asyncio.Lock()  # Serialize database access
        self._connection: aiosqlite.Connection | None = None

    async def _initialize(self) -> None:
        """
        Lazily open the connection and create tables on first use.
        """
        if self._initialized:
            return
        async with self._init_lock:
            if self._initialized:
                return

            self._connection = await aiosqlite.connect(self.db_path)
            self._connection.row_factory = aiosqlite.Row

            await self._connection.execute("PRAGMA journal_mode=WAL")
            await self._connection.execute("PRAGMA synchronous=NORMAL")
            await self._connection.execute("PRAGMA busy_timeout=30000")

            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    position INTEGER NOT NULL
                )
            """)
            await self._connection.execute("""
                CREATE TABLE IF NOT EXISTS todos (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    status TEXT NOT NULL,
                    category_id TEXT NOT NULL,
                    due_date TEXT,
                    position INTEGER NOT NULL
                )
            """)
            await self._connection.execute("""
                CREATE INDEX IF NOT EXISTS idx_todos_status
                ON todos(status)
            """)
            await self._connection.commit()
            logger.info(f"Todo database ready at {self.db_path}")
            self._initialized = True

    async def close(self) -> None:
        """
        Close the persistent database connection.
        """
        if self._connection:
            await self._connection.close()
            self._connection = None
            self._initialized = False

    async def __aenter__(self) -> AsyncSqlRepo:
        """Async context manager entry."""
        await self._initialize()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Async context manager exit."""
        await self.close()

    @property
    def _conn(self) -> aiosqlite.Connection:
        if self._connection is None:
            raise RuntimeError("Repository connection is not open")
        return self._connection

    @staticmethod
    def _row_to_todo(row: aiosqlite.Row) -> Todo:
        due_date = row["due_date"]
        return Todo(
            id=row["id"],
            name=row["name"],
            status=row["status"],
            category_id=row["category_id"],
            due_date=datetime.fromisoformat(due_date) if due_date else None,
        )

    @staticmethod
    def _to_column(key: str, value: Any) -> Any:
        if key == "due_date" and value is not None:
            return value.isoformat()
        return value

    async def _next_position(self, table: str) -> int:
        async with self._conn.execute(
            f"SELECT COALESCE(MAX(position), 0) + 1 FROM {table}"
        ) as cursor:
            row = await cursor.fetchone()
        return row[0]

    # ------------------------------------------------------------------ #
    # Todos
    # ------------------------------------------------------------------ #

    async def list_todos(self) -> list[Todo]:
        await self._initialize()
        async with self._conn.execute(
            f"SELECT {_TODO_COLUMNS} FROM todos ORDER BY position"
        ) as cursor:
            rows = await cursor.fetchall()
        return [self._row_to_todo(row) for row in rows]

    async def get_todo(self, todo_id: str) -> Todo | None:
        await self._initialize()
        async with self._conn.execute(
            f"SELECT {_TODO_COLUMNS} FROM todos WHERE id = ?", (todo_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return self._row_to_todo(row) if row else None

    async def create_todo(self, data: TodoCreate) -> Todo:
        await self._initialize()
        todo = Todo(**data.model_dump())
        async with self._connection_lock:
            position = await self._next_position("todos")
            await self._conn.execute(
                "INSERT INTO todos (id, name, status, category_id, due_date, position) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    todo.id,
                    todo.name,
                    todo.status,
                    todo.category_id,
                    self._to_column("due_date", todo.due_date),
                    position,
                ),
            )
            await self._conn.commit()
        logger.info(f"Todo created: {todo.id}")
        return todo

    async def update_todo(self, todo_id: str, updates: TodoUpdate) -> Todo | None:
        await self._initialize()
        changes = {
            key: self._to_column(key, value)
            for key, value in updates.changes().items()
            if key in _UPDATABLE_COLUMNS
        }
        async with self._connection_lock:
            if changes:
                assignments = ", ".join(f"{key} = ?" for key in changes)
                cursor = await self._conn.execute(
                    f"UPDATE todos SET {assignments} WHERE id = ?",
                    (*changes.values(), todo_id),
                )
                await self._conn.commit()
                if cursor.rowcount == 0:
                    logger.warning(f"Todo with ID {todo_id} not found.")
                    return None
        return await self.get_todo(todo_id)

    async def delete_todo(self, todo_id: str) -> bool:
        await self._initialize()
        async with self._connection_lock:
            cursor = await self._conn.execute(
                "DELETE FROM todos WHERE id = ?", (todo_id,)
            )
            await self._conn.commit()
        return cursor.rowcount > 0

    async def clear_completed(self) -> int:
        await self._initialize()
        async with self._connection_lock:
            cursor = await self._conn.execute(
                "DELETE FROM todos WHERE status = 'completed'"
            )
            await self._conn.commit()
        return cursor.rowcount

    # ------------------------------------------------------------------ #
    # Categories
    # ------------------------------------------------------------------ #

    async def list_categories(self) -> list[Category]:
        await self._initialize()
        async with self._conn.execute(
            "SELECT id, name FROM categories ORDER BY position"
        ) as cursor:
            rows = await cursor.fetchall()
        return [Category(id=row["id"], name=row["name"]) for row in rows]

    async def get_category(self, category_id: str) -> Category | None:
        await self._initialize()
        async with self._conn.execute(
            "SELECT id, name FROM categories WHERE id = ?", (category_id,)
        ) as cursor:
            row = await cursor.fetchone()
        return Category(id=row["id"], name=row["name"]) if row else None

    async def create_category(self, data: CategoryCreate) -> Category:
        await self._initialize()
        category = Category(name=data.name)
        async with self._connection_lock:
            position = await self._next_position("categories")
            await self._conn.execute(
                "INSERT INTO categories (id, name, position) VALUES (?, ?, ?)",
                (category.id, category.name, position),
            )
            await self._conn.commit()
        logger.info(f"Category created: {category.id}")
        return category

    async def delete_category(self, category_id: str) -> bool:
        await self._initialize()
        async with self._connection_lock:
            cursor = await self._conn.execute(
                "DELETE FROM categories WHERE id = ?", (category_id,)
            )
            await self._conn.commit()
        return cursor.rowcount > 0

    async def is_empty(self) -> bool:
        await self._initialize()
        async with self._conn.execute(
            "SELECT (SELECT COUNT(*) FROM todos) + (SELECT COUNT(*) FROM categories)"
        ) as cursor:
            row = await cursor.fetchone()
        return row[0] == 0
