"""
errors.py: Domain errors raised by the store-facing code and the join pipeline.

Every error carries the HTTP status it surfaces as, a semantic ``code`` for the
standard error envelope, and a finer-grained ``reason`` so clients can tell a
duplicate device apart from a duplicate registration code without parsing
messages. main.py converts them with a single exception handler.
"""
from __future__ import annotations

from typing import Any, Optional


class AttendanceError(Exception):
    """Base class for every locally detected, non-retryable rejection."""

    status_code: int = 400
    code: str = "BAD_REQUEST"

    def __init__(
        self,
        message: str,
        *,
        reason: Optional[str] = None,
        details: Optional[list[dict[str, Any]]] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.reason = reason
        self.details = details or []
        self.context = context or {}


class NotFoundError(AttendanceError):
    status_code = 404
    code = "NOT_FOUND"


class ForbiddenError(AttendanceError):
    status_code = 403
    code = "FORBIDDEN"


class BadRequestError(AttendanceError):
    status_code = 400
    code = "BAD_REQUEST"


class ConflictError(AttendanceError):
    status_code = 409
    code = "CONFLICT"


def session_not_found(session_id: str) -> NotFoundError:
    return NotFoundError(
        f"Session '{session_id}' not found",
        reason="SESSION_NOT_FOUND",
    )


__all__ = [
    "AttendanceError",
    "NotFoundError",
    "ForbiddenError",
    "BadRequestError",
    "ConflictError",
    "session_not_found",
]
