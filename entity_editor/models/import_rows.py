from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .validation import FieldError

"""Bulk import row models.

A ParsedImportRow is what the spreadsheet parser recovers before any schema
knowledge is applied; an ImportValidationOutcome is the schema-aware verdict
for exactly one parsed row.
"""

__all__ = [
    "ParsedImportRow",
    "ParsedSheet",
    "ImportValidationOutcome",
    "InsertRowResult",
    "ImportCommitResult",
]


@dataclass(frozen=True)
class ParsedImportRow:
    """One non-empty data row of an uploaded template.

    ``row_number`` is the 1-based row number in the source sheet (the first
    data row of a template is row 4) and is what operators see in reports.
    """
    row_number: int
    values: dict[str, Any]  # Header label (marker stripped) -> cell value
    raw_values: list[Any] | None = None  # Cells as read, in sheet column order


@dataclass(frozen=True)
class ParsedSheet:
    sheet_name: str
    labels: list[str]  # Row-1 labels with the required marker stripped
    rows: list[ParsedImportRow]
    total_rows: int = 0  # Rows present in the sheet, header rows included


@dataclass(frozen=True)
class ImportValidationOutcome:
    row_number: int
    valid: bool
    errors: tuple[FieldError, ...] = ()
    record: dict[str, Any] = field(default_factory=dict)  # Column name -> typed value


@dataclass(frozen=True)
class InsertRowResult:
    row_number: int  # Source row the record came from
    success: bool
    row_id: str | None = None
    errors: dict[str, str] | None = None  # Field -> message as reported by persistence


@dataclass(frozen=True)
class ImportCommitResult:
    success_count: int
    failure_count: int
    results: list[InsertRowResult] = field(default_factory=list)

    @classmethod
    def empty(cls) -> ImportCommitResult:
        return cls(success_count=0, failure_count=0, results=[])
