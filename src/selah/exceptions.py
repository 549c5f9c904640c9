"""Progression error taxonomy.

ValidationError is raised before any write. StorageError wraps database
failures. ConflictError marks an expected uniqueness violation and is never
surfaced to callers as a failure.
"""

from __future__ import annotations

from typing import Any


class ProgressionError(Exception):
    """Base class for all progression engine errors."""

    code = "progression_error"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses and structured logs."""
        return {"error": self.code, "detail": self.message, **self.context}


class ValidationError(ProgressionError):
    """Unknown activity type, unknown XP event or malformed trigger."""

    code = "validation_error"


class StorageError(ProgressionError):
    """A store read or write failed, or an optimistic lock could not be won."""

    code = "storage_error"


class ConflictError(ProgressionError):
    """Uniqueness violation on an at-most-once insert."""

    code = "conflict"
