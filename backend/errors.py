"""
backend/errors.py

Failure taxonomy shared by every service module.

Services raise these instead of HTTPException so the same code can be driven
from routes and from tests. backend/main.py maps them to JSON responses of the
form {"error": <category>, "detail": <reason>}.

Categories are stable strings; clients switch on them. The reason is a short
human-readable sentence and never contains stack traces or SQL.
"""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    INVALID_INPUT = "invalid_input"
    INVALID_COLLABORATOR = "invalid_collaborator"
    NOT_FOUND = "not_found"
    ACCESS_DENIED = "access_denied"
    CONFLICT = "conflict"
    INTERNAL = "internal"


class StudioError(Exception):
    """Base class for domain failures that map onto an HTTP response."""

    category: ErrorCategory = ErrorCategory.INTERNAL
    status_code: int = 500
    default_reason: str = "Internal error"

    def __init__(self, reason: str = ""):
        self.reason = reason or self.default_reason
        super().__init__(self.reason)

    def to_dict(self) -> dict:
        return {"error": self.category.value, "detail": self.reason}


class InvalidInput(StudioError):
    """Malformed or missing required fields."""
    category = ErrorCategory.INVALID_INPUT
    status_code = 400
    default_reason = "Invalid input"


class InvalidCollaborator(InvalidInput):
    """A collaborator id does not resolve to an existing user."""
    category = ErrorCategory.INVALID_COLLABORATOR
    default_reason = "Invalid collaborator detected"


class NotFound(StudioError):
    category = ErrorCategory.NOT_FOUND
    status_code = 404
    default_reason = "Not found"


class AccessDenied(StudioError):
    category = ErrorCategory.ACCESS_DENIED
    status_code = 403
    default_reason = "Access denied"


class Conflict(StudioError):
    """Lost a race against a concurrent writer (e.g. two registrations for one username)."""
    category = ErrorCategory.CONFLICT
    status_code = 409
    default_reason = "Conflicting concurrent update"


class Internal(StudioError):
    category = ErrorCategory.INTERNAL
    status_code = 500
    default_reason = "Internal error"
