"""
Application-level errors surfaced through the HTTP layer.

Each error carries the HTTP status code it maps to; the FastAPI exception
handler renders them as ``{"error": message}``.
"""

from __future__ import annotations

HTTP_BAD_REQUEST = 400
HTTP_NOT_FOUND = 404
HTTP_INTERNAL_ERROR = 500


class AppError(Exception):
    """Base application error with an HTTP status."""

    status_code: int = HTTP_INTERNAL_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    """Bad or missing input, rejected before any work is done."""

    status_code = HTTP_BAD_REQUEST


class NotFoundError(AppError):
    """Requested todo or category does not exist."""

    status_code = HTTP_NOT_FOUND
