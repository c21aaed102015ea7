from __future__ import annotations

from dataclasses import dataclass, field

"""Validation result models shared by inline edits and bulk import."""

__all__ = [
    "FieldError",
    "ValidationResult",
]


@dataclass(frozen=True)
class FieldError:
    """A single violated rule.

    ``field`` is the column name for inline edits and the column label for
    import rows (operators see labels in their spreadsheet).
    """
    field: str
    message: str
    code: str = "schema_violation"  # required / max_length / invalid_number / unknown_column ...


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    errors: tuple[FieldError, ...] = field(default_factory=tuple)

    @classmethod
    def from_errors(cls, errors: list[FieldError]) -> ValidationResult:
        return cls(valid=not errors, errors=tuple(errors))

    def fields(self) -> list[str]:
        return [e.field for e in self.errors]
