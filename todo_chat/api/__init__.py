"""HTTP surface: todo, category and chat routers plus the app factory."""

from .app import create_app, create_llm_client

__all__ = ["create_app", "create_llm_client"]
