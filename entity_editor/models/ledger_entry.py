from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Ledger entry model and EditStatus enum.

A ledger entry holds the uncommitted patch of one row. It is created on the
first field edit and destroyed on successful commit or explicit cancel.
"""

__all__ = [
    "EditStatus",
    "LedgerEntry",
]


class EditStatus(Enum):
    """Status of a row's pending edit.

    State transitions: pending → saving → (saved | error)

    - PENDING: Edited locally, not yet submitted
    - SAVING: Commit in flight
    - SAVED: Committed; the entry is removed as soon as this status is set
    - ERROR: Commit failed or conflicted; entry kept and still editable
    """
    PENDING = "pending"
    SAVING = "saving"
    SAVED = "saved"
    ERROR = "error"


@dataclass(frozen=True)
class LedgerEntry:
    row_id: str
    patch: dict[str, Any] = field(default_factory=dict)  # Editable column name -> new value
    status: EditStatus = EditStatus.PENDING
    base_version: int = 1  # Version the patch was computed against
    error: str | None = None
