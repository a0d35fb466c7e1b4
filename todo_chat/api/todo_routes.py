"""Todo CRUD endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from todo_chat.exceptions import NotFoundError
from todo_chat.store.models import TodoCreate, TodoUpdate
from todo_chat.store.repositories.base import TodoRepository

from .dependencies import dump, get_repo, parse_body

router = APIRouter(prefix="/todos", tags=["todos"])

TODO_NOT_FOUND = "Todo not found"


@router.get("")
async def get_todos(repo: TodoRepository = Depends(get_repo)) -> Any:
    return [dump(todo) for todo in await repo.list_todos()]


# Registered before "/{todo_id}" so the literal path wins.
@router.delete("/completed/clear")
async def clear_completed(repo: TodoRepository = Depends(get_repo)) -> Any:
    """Remove every completed todo."""
    return {"deletedCount": await repo.clear_completed()}


@router.get("/{todo_id}")
async def get_todo(todo_id: str, repo: TodoRepository = Depends(get_repo)) -> Any:
    todo = await repo.get_todo(todo_id)
    if todo is None:
        raise NotFoundError(TODO_NOT_FOUND)
    return dump(todo)


@router.post("", status_code=201)
async def create_todo(
    request: Request, repo: TodoRepository = Depends(get_repo)
) -> Any:
    data = await parse_body(request, TodoCreate, "Name and categoryId are required")
    return dump(await repo.create_todo(data))


@router.put("/{todo_id}")
async def update_todo(
    todo_id: str, request: Request, repo: TodoRepository = Depends(get_repo)
) -> Any:
    updates = await parse_body(request, TodoUpdate, "Invalid todo update")
    todo = await repo.update_todo(todo_id, updates)
    if todo is None:
        raise NotFoundError(TODO_NOT_FOUND)
    return dump(todo)


@router.delete("/{todo_id}", status_code=204)
async def delete_todo(todo_id: str, repo: TodoRepository = Depends(get_repo)) -> Response:
    if not await repo.delete_todo(todo_id):
        raise NotFoundError(TODO_NOT_FOUND)
    return Response(status_code=204)
