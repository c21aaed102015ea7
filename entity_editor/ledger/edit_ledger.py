from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from ..errors import NonEditableColumnError, PermissionDeniedError
from ..models.ledger_entry import EditStatus, LedgerEntry
from ..models.schema import EntitySchema

"""In-memory ledger of uncommitted per-row edits.

One entry per row with changes. Entries are immutable and replaced on every
change, so a caller holding an entry never sees it mutate underneath.
Rows are independent: nothing done to one row's entry touches another.
"""

__all__ = [
    "EditLedger",
]

logger = logging.getLogger(__name__)


class EditLedger:
    """Pending edits for the rows of one entity schema.

    Not thread safe; the editor drives it from a single control flow.
    """

    def __init__(self, schema: EntitySchema) -> None:
        self._schema = schema
        self._entries: dict[str, LedgerEntry] = {}

    @property
    def schema(self) -> EntitySchema:
        return self._schema

    def set_pending_edit(self, row_id: str, column_name: str, value: Any, base_version: int) -> LedgerEntry:
        """Record a field edit for a row.

        Creates the row's entry on first call; later calls merge into the
        existing patch and keep the version recorded by the first edit.
        Editing a row whose last commit failed puts it back to PENDING.

        Raises:
            PermissionDeniedError: If the schema does not allow edits.
            NonEditableColumnError: If the column is unknown or not editable.
        """
        if not self._schema.permissions.can_edit:
            raise PermissionDeniedError(f"editing is not permitted for entity '{self._schema.entity_id}'")
        column = self._schema.column(column_name)
        if column is None:
            raise NonEditableColumnError(f"unknown column '{column_name}'")
        if not column.editable:
            raise NonEditableColumnError(f"column '{column_name}' is not editable")

        existing = self._entries.get(row_id)
        if existing is None:
            entry = LedgerEntry(row_id=row_id, patch={column_name: value}, base_version=base_version)
            logger.debug("ledger: new entry row=%s base_version=%s", row_id, base_version)
        else:
            status = EditStatus.PENDING if existing.status is EditStatus.ERROR else existing.status
            entry = replace(
                existing,
                patch={**existing.patch, column_name: value},
                status=status,
                error=None if status is EditStatus.PENDING else existing.error,
            )
        self._entries[row_id] = entry
        return entry

    def get_row_edits(self, row_id: str) -> dict[str, Any] | None:
        entry = self._entries.get(row_id)
        return dict(entry.patch) if entry is not None else None

    def get_entry(self, row_id: str) -> LedgerEntry | None:
        return self._entries.get(row_id)

    def has_row_changes(self, row_id: str) -> bool:
        return row_id in self._entries

    def has_pending_changes(self) -> bool:
        return bool(self._entries)

    def list_pending_row_ids(self) -> set[str]:
        return set(self._entries)

    def clear_row_edits(self, row_id: str) -> None:
        """Drop a row's entry. Idempotent."""
        self._entries.pop(row_id, None)

    def clear_all(self) -> None:
        self._entries.clear()

    def switch_schema(self, schema: EntitySchema) -> None:
        """Activate another schema/region; pending edits of the old one are dropped."""
        if self._entries:
            logger.info(
                "discarding %d pending row edit(s) on switch %s -> %s",
                len(self._entries), self._schema.entity_id, schema.entity_id,
            )
        self._schema = schema
        self.clear_all()

    def update_status(self, row_id: str, status: EditStatus, error: str | None = None) -> None:
        """Move an entry through pending → saving → (saved | error).

        SAVED removes the entry. No-op when the row has no entry.
        """
        entry = self._entries.get(row_id)
        if entry is None:
            return
        if status is EditStatus.SAVED:
            del self._entries[row_id]
            return
        self._entries[row_id] = replace(entry, status=status, error=error)

    def __len__(self) -> int:
        return len(self._entries)
