"""
Logging and error reporting helpers for the todo/chat service.

structlog is configured once at import and renders through the stdlib root
logger, so ``setup_logging`` only has to pick the level. Request-scoped code
binds context with ``ContextualLogger``; timed operations use either the
``log_operation`` decorator or the ``operation_context`` context manager.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any, ParamSpec, TypeVar

import structlog
from pydantic import ValidationError as PydanticValidationError

from todo_chat.exceptions import HTTP_BAD_REQUEST, HTTP_INTERNAL_ERROR, AppError
from todo_chat.llm.exceptions import UpstreamError

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

P = ParamSpec("P")
T = TypeVar("T")

logger = structlog.get_logger(__name__)


def setup_logging(logging_config: dict[str, Any] | None = None) -> None:
    """Set the root log level from the ``logging`` config section."""
    level = (logging_config or {}).get("level", "INFO")
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s - %(levelname)s - %(message)s",
    )


class ErrorHandler:
    """Maps exceptions to an HTTP status and a category for structured logs."""

    @staticmethod
    def classify_error(error: Exception) -> tuple[int, str]:
        """
        Classify an error.

        Returns:
            Tuple of (http_status, error_category)
        """
        if isinstance(error, AppError):
            return error.status_code, "app_error"
        if isinstance(error, UpstreamError):
            return HTTP_INTERNAL_ERROR, "upstream_error"
        if isinstance(error, PydanticValidationError):
            return HTTP_BAD_REQUEST, "validation_error"
        # TimeoutError subclasses OSError, so it must be checked first
        if isinstance(error, TimeoutError):
            return HTTP_INTERNAL_ERROR, "timeout_error"
        if isinstance(error, ConnectionError | OSError):
            return HTTP_INTERNAL_ERROR, "connection_error"
        if isinstance(error, ValueError | TypeError):
            return HTTP_BAD_REQUEST, "parameter_error"
        return HTTP_INTERNAL_ERROR, "unknown_error"

    @staticmethod
    def log_error(
        error: Exception,
        operation: str,
        context: dict[str, Any] | None = None,
    ) -> tuple[int, str]:
        """Log ``error`` with its classification and return ``(status, category)``."""
        status_code, error_category = ErrorHandler.classify_error(error)
        logger.error(
            "Operation failed",
            operation=operation,
            error_type=type(error).__name__,
            error_category=error_category,
            status_code=status_code,
            error_message=str(error),
            **(context or {}),
        )
        return status_code, error_category


class _Timer:
    """Elapsed wall time for one operation, reported in milliseconds."""

    def __init__(self, enabled: bool):
        self.start = time.perf_counter() if enabled else None

    def fields(self) -> dict[str, float]:
        if self.start is None:
            return {}
        return {"duration_ms": round((time.perf_counter() - self.start) * 1000, 2)}


def _failure_fields(error: Exception, timer: _Timer) -> dict[str, Any]:
    return {
        "error_type": type(error).__name__,
        "error_message": str(error),
        **timer.fields(),
    }


def log_operation(
    operation: str,
    *,
    log_result: bool = False,
    log_timing: bool = True,
    context: dict[str, Any] | None = None,
) -> Callable[[Callable[P, Awaitable[T]]], Callable[P, Awaitable[T]]]:
    """
    Decorate a coroutine function so each call logs start, outcome and timing.

    Exceptions are logged and re-raised unchanged.
    """
    def decorator(func: Callable[P, Awaitable[T]]) -> Callable[P, Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            bound = logger.bind(
                operation=operation, function=func.__name__, **(context or {})
            )
            bound.debug("Operation started")
            timer = _Timer(log_timing)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                bound.error("Operation failed", **_failure_fields(e, timer))
                raise

            extra = timer.fields()
            if log_result:
                extra["result"] = result
            bound.info("Operation completed", **extra)
            return result

        return wrapper
    return decorator


@asynccontextmanager
async def operation_context(
    operation: str,
    *,
    context: dict[str, Any] | None = None,
    log_timing: bool = True,
) -> AsyncIterator[Any]:
    """Same logging as ``log_operation`` for a block; yields the bound logger."""
    bound = logger.bind(operation=operation, **(context or {}))
    bound.debug("Operation started")
    timer = _Timer(log_timing)
    try:
        yield bound
    except Exception as e:
        bound.error("Operation failed", **_failure_fields(e, timer))
        raise
    bound.info("Operation completed", **timer.fields())


class ContextualLogger:
    """Structured logger carrying request-scoped context (request id, counts)."""

    def __init__(self, base_context: dict[str, Any] | None = None):
        self.base_context = base_context or {}
        self._logger = logger.bind(**self.base_context)

    def bind(self, **context: Any) -> ContextualLogger:
        """Return a new logger with ``context`` merged over the current one."""
        return ContextualLogger({**self.base_context, **context})

    def info(self, message: str, **context: Any) -> None:
        self._logger.info(message, **context)

    def warning(self, message: str, **context: Any) -> None:
        self._logger.warning(message, **context)

    def error(self, message: str, **context: Any) -> None:
        self._logger.error(message, **context)

    def debug(self, message: str, **context: Any) -> None:
        self._logger.debug(message, **context)
