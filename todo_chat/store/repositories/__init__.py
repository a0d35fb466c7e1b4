from todo_chat.store.repositories.base import TodoRepository
from todo_chat.store.repositories.memory_repo import InMemoryRepo
from todo_chat.store.repositories.sql_repo import AsyncSqlRepo

__all__ = ["AsyncSqlRepo", "InMemoryRepo", "TodoRepository"]
