from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for the structured error log.

Each record describes one rejected row/field of an import run or one failed
commit. ``row=-1`` is the sentinel for file-level errors where no row applies
(for example a template that fails the layout check).

The record shape is fixed by ``entity_editor/contracts/error_log_schema.json``.
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        entity: Entity identifier the error belongs to
        row: Source row number for imports, -1 when unknown
        row_id: Row identifier for commits, empty for imports
        field: Column label/name the error refers to, empty for row-level errors
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Human readable description
    """
    timestamp: str
    entity: str
    row: int
    row_id: str
    field: str
    error_type: str
    message: str

    @staticmethod
    def create(
        entity: str,
        row: int,
        error_type: str,
        message: str,
        *,
        field: str = "",
        row_id: str = "",
    ) -> ErrorRecord:
        """Create a new ErrorRecord stamped with the current UTC time."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            entity=entity,
            row=row,
            row_id=row_id,
            field=field,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize to a single JSON line without extra keys."""
        return json.dumps(asdict(self), ensure_ascii=False)
