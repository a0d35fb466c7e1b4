"""Category CRUD endpoints."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request, Response

from todo_chat.exceptions import NotFoundError
from todo_chat.store.models import CategoryCreate
from todo_chat.store.repositories.base import TodoRepository

from .dependencies import dump, get_repo, parse_body

router = APIRouter(prefix="/categories", tags=["categories"])

CATEGORY_NOT_FOUND = "Category not found"


@router.get("")
async def get_categories(repo: TodoRepository = Depends(get_repo)) -> Any:
    return [dump(category) for category in await repo.list_categories()]


@router.get("/{category_id}")
async def get_category(
    category_id: str, repo: TodoRepository = Depends(get_repo)
) -> Any:
    category = await repo.get_category(category_id)
    if category is None:
        raise NotFoundError(CATEGORY_NOT_FOUND)
    return dump(category)


@router.post("", status_code=201)
async def create_category(
    request: Request, repo: TodoRepository = Depends(get_repo)
) -> Any:
    data = await parse_body(request, CategoryCreate, "Name is required")
    return dump(await repo.create_category(data))


@router.delete("/{category_id}", status_code=204)
async def delete_category(
    category_id: str, repo: TodoRepository = Depends(get_repo)
) -> Response:
    # Todos keep their categoryId when a category is removed.
    if not await repo.delete_category(category_id):
        raise NotFoundError(CATEGORY_NOT_FOUND)
    return Response(status_code=204)
