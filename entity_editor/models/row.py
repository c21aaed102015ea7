from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Union

"""Row snapshot model.

Rows are owned by persistence. The core keeps a read snapshot per row plus
any uncommitted patch held in the edit ledger.
"""

__all__ = [
    "FieldValue",
    "Row",
]

# Typed value of a single field after boundary decoding
FieldValue = Union[str, int, float, bool, date, None]


@dataclass(frozen=True)
class Row:
    row_id: str
    version: int  # Starts at 1, +1 per successful commit
    values: dict[str, Any] = field(default_factory=dict)  # Column name -> value
    last_updated_by: str | None = None
    last_updated_on: str | None = None  # ISO8601 UTC

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Row:
        """Build a row from the flat wire shape ``{id, version, lastUpdatedBy, ..., <fields>}``."""
        meta = {"id", "row_id", "version", "lastUpdatedBy", "last_updated_by", "lastUpdatedOn", "last_updated_on"}
        return cls(
            row_id=str(data.get("id", data.get("row_id"))),
            version=int(data["version"]),
            values={k: v for k, v in data.items() if k not in meta},
            last_updated_by=data.get("lastUpdatedBy", data.get("last_updated_by")),
            last_updated_on=data.get("lastUpdatedOn", data.get("last_updated_on")),
        )

    def merged(self, patch: dict[str, Any]) -> dict[str, Any]:
        """Field map with ``patch`` applied over this snapshot."""
        return {**self.values, **patch}
