from __future__ import annotations

from .models.validation import ValidationResult

"""Exceptions shared across the editor core.

Module-local failures (config loading, template layout) define their own
exception next to the code that raises them; the classes here cross module
boundaries.
"""

__all__ = [
    "EditorError",
    "SchemaViolationError",
    "EditReasonError",
    "NonEditableColumnError",
    "PermissionDeniedError",
    "CommitInProgressError",
    "ConflictResolutionError",
    "TransportError",
    "SchemaNotFoundError",
]


class EditorError(Exception):
    """Base exception for the editor core."""
    pass


class SchemaViolationError(EditorError):
    """Raised when a commit is refused because the merged record is invalid."""

    def __init__(self, row_id: str, result: ValidationResult) -> None:
        self.row_id = row_id
        self.result = result
        details = "; ".join(e.message for e in result.errors)
        super().__init__(f"row '{row_id}' failed validation: {details}")


class EditReasonError(EditorError):
    """Raised when the audit reason for a change is missing or out of bounds."""
    pass


class NonEditableColumnError(EditorError):
    """Raised when a pending edit targets an unknown or non-editable column."""
    pass


class PermissionDeniedError(EditorError):
    """Raised when the schema's permission set forbids the action."""
    pass


class CommitInProgressError(EditorError):
    """Raised when a commit is requested for a row that is already saving."""
    pass


class ConflictResolutionError(EditorError):
    """Raised when Retry/Refresh/Cancel is requested without a pending conflict."""
    pass


class TransportError(EditorError):
    """Raised by persistence collaborators for failures outside the conflict path."""
    pass


class SchemaNotFoundError(EditorError):
    """Raised by schema providers for unknown entities or regions."""
    pass
