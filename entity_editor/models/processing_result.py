from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .import_rows import ImportCommitResult, ImportValidationOutcome

"""Result model for one end-to-end bulk import run.

Aggregates parse, validation and insert counters for the SUMMARY line.
"""

__all__ = [
    "ImportRunResult",
]


@dataclass(frozen=True)
class ImportRunResult:
    """Aggregated results of a bulk import run.

    ``inserted_rows`` and ``failed_rows`` only count rows submitted to the
    insert collaborator; rows rejected by validation are ``invalid_rows``.
    """
    entity_id: str
    sheet_rows: int  # Rows present in the sheet, header rows included
    parsed_rows: int  # Non-empty data rows
    valid_rows: int
    invalid_rows: int
    inserted_rows: int
    failed_rows: int
    start_time: datetime
    end_time: datetime
    elapsed_seconds: float
    throughput_rows_per_sec: float  # parsed_rows / elapsed
    dry_run: bool = False
    outcomes: list[ImportValidationOutcome] | None = None
    commit: ImportCommitResult | None = None

    @property
    def has_failures(self) -> bool:
        return self.invalid_rows > 0 or self.failed_rows > 0
