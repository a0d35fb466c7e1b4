"""
FastAPI application factory.

The upstream client and the todo repository are created once per process (in
the lifespan handler, unless injected by the caller) and stored on
``app.state``; handlers reach them through dependencies.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import UTC, datetime
from typing import Any

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from todo_chat.chat.relay import ChatRelay
from todo_chat.config import Configuration
from todo_chat.exceptions import HTTP_INTERNAL_ERROR, AppError
from todo_chat.llm.client import UpstreamChatClient
from todo_chat.llm.models import ProviderConfig
from todo_chat.logging_utils import ErrorHandler, logger
from todo_chat.store import create_repository, seed_repository
from todo_chat.store.repositories.base import TodoRepository

from . import category_routes, chat_routes, todo_routes


def create_llm_client(configuration: Configuration) -> UpstreamChatClient:
    """Build the upstream client from the active provider configuration."""
    llm_config = {
        **configuration.get_llm_config(),
        "http_client": configuration.get_http_client_config(),
    }
    provider = configuration.get_config_dict().get("llm", {}).get("active", "ollama")
    return UpstreamChatClient(ProviderConfig.from_dict(llm_config, provider))


def create_app(
    configuration: Configuration,
    *,
    llm_client: UpstreamChatClient | None = None,
    repo: TodoRepository | None = None,
) -> FastAPI:
    """Create the application; injected collaborators are not closed by it."""
    server_config = configuration.get_server_config()
    repo_config = configuration.get_repository_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: list[Any] = []
        if app.state.llm_client is None:
            app.state.llm_client = create_llm_client(configuration)
            app.state.relay = ChatRelay(app.state.llm_client)
            owned.append(app.state.llm_client)
        if app.state.repo is None:
            app.state.repo = create_repository(repo_config)
            owned.append(app.state.repo)
        if repo_config["seed_on_startup"]:
            await seed_repository(app.state.repo)

        logger.info(
            "Server ready",
            api_prefix=server_config["api_prefix"],
            model=app.state.llm_client.model,
        )
        try:
            yield
        finally:
            for resource in owned:
                await resource.close()
            logger.info("Application shutdown complete")

    app = FastAPI(
        title="Todo Chat API",
        description="Todo management with a streaming AI chat relay.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.llm_client = llm_client
    app.state.relay = ChatRelay(llm_client) if llm_client is not None else None
    app.state.repo = repo

    cors_config = server_config.get("cors", {})
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_config.get("allow_origins", ["*"]),
        allow_credentials=cors_config.get("allow_credentials", True),
        allow_methods=cors_config.get("allow_methods", ["*"]),
        allow_headers=cors_config.get("allow_headers", ["*"]),
    )

    @app.exception_handler(AppError)
    async def handle_app_error(request: Request, exc: AppError) -> JSONResponse:
        ErrorHandler.log_error(exc, f"{request.method} {request.url.path}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        ErrorHandler.log_error(exc, f"{request.method} {request.url.path}")
        return JSONResponse(
            status_code=HTTP_INTERNAL_ERROR, content={"error": "Something went wrong!"}
        )

    prefix = server_config["api_prefix"]
    app.include_router(todo_routes.router, prefix=prefix)
    app.include_router(category_routes.router, prefix=prefix)
    app.include_router(chat_routes.router, prefix=prefix)

    @app.get(f"{prefix}/health")
    async def health_check() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok", "timestamp": datetime.now(UTC).isoformat()}

    return app
