from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from ..errors import (
    CommitInProgressError,
    ConflictResolutionError,
    EditorError,
    NonEditableColumnError,
    PermissionDeniedError,
    SchemaViolationError,
    TransportError,
)
from ..ledger.edit_ledger import EditLedger
from ..logging.error_log import ErrorLogBuffer
from ..models.commit import BatchCommitResult, CommitOutcome, CommitState, ConflictRecord, Resolution
from ..models.config_models import EditReasonConfig
from ..models.error_record import ErrorRecord
from ..models.ledger_entry import EditStatus
from ..models.row import Row
from ..models.schema import EntitySchema
from ..models.validation import ValidationResult
from ..persistence.protocols import RowPersistence, RowUpdate
from ..validation.engine import validate_edit_reason, validate_record

"""Optimistic concurrency commit protocol.

Every commit carries the version the patch was computed against. The store
accepts it only when that version is still current and then bumps the version
by exactly one; otherwise it answers with a conflict record and nothing is
written.

Flow per row::

    validate (reason + merged record) ──invalid──> SchemaViolationError
        │
    ledger SAVING ──> commit_single
        ├─ success  -> snapshot advanced, ledger entry removed   (COMMITTED)
        ├─ conflict -> conflict kept pending, entry ERROR        (CONFLICTED)
        └─ failure  -> entry ERROR with message                  (FAILED)

A pending conflict is closed only by Retry (same patch, same stale version),
Refresh (adopt the server row) or Cancel (drop the patch). Nothing is retried
automatically.
"""

__all__ = [
    "CommitProtocol",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _PendingConflict:
    record: ConflictRecord
    patch: dict[str, Any]
    base_version: int
    reason: str


class CommitProtocol:
    """Commits ledger patches for one entity schema."""

    def __init__(
        self,
        schema: EntitySchema,
        persistence: RowPersistence,
        ledger: EditLedger,
        *,
        edit_reason: EditReasonConfig | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self._schema = schema
        self._persistence = persistence
        self._ledger = ledger
        self._reason_cfg = edit_reason or EditReasonConfig()
        self._error_log = error_log
        self._snapshots: dict[str, Row] = {}
        self._conflicts: dict[str, _PendingConflict] = {}
        self._in_flight: set[str] = set()

    @property
    def schema(self) -> EntitySchema:
        return self._schema

    # -- snapshots -------------------------------------------------------------

    def load_rows(self, rows: Iterable[Row]) -> None:
        for row in rows:
            self._snapshots[row.row_id] = row

    def snapshot(self, row_id: str) -> Row:
        """Current read snapshot of a row, fetched from persistence on first use."""
        row = self._snapshots.get(row_id)
        if row is None:
            row = self._persistence.fetch_row(self._schema.entity_id, row_id)
            self._snapshots[row_id] = row
        return row

    # -- single row ------------------------------------------------------------

    def commit_row(self, row_id: str, patch: dict[str, Any], base_version: int, reason: str) -> CommitOutcome:
        """Validate and submit one row's patch.

        Raises:
            CommitInProgressError: If a commit for the row is already in flight.
            EditReasonError: If the reason is missing or out of bounds.
            PermissionDeniedError: If the schema does not allow edits.
            NonEditableColumnError: If the patch touches a non-editable column.
            SchemaViolationError: If the merged record fails validation. The
                ledger entry is left untouched and persistence is not called.

        A transport failure, including one while fetching the row snapshot,
        comes back as a FAILED outcome.
        """
        self._check_not_saving(row_id)
        reason = self._check_reason(reason)
        self._check_patch(patch)
        try:
            base = self.snapshot(row_id).values
        except TransportError as e:
            return self._failed(row_id, str(e), transport=True)
        result = validate_record(self._schema, base, patch)
        if not result.valid:
            self._log_violation(row_id, result)
            raise SchemaViolationError(row_id, result)

        self._in_flight.add(row_id)
        self._ledger.update_status(row_id, EditStatus.SAVING)
        try:
            resp = self._persistence.commit_single(self._schema.entity_id, row_id, base_version, patch, reason)
        except TransportError as e:
            return self._failed(row_id, str(e), transport=True)
        except Exception as e:
            self._ledger.update_status(row_id, EditStatus.ERROR, str(e))
            raise
        finally:
            self._in_flight.discard(row_id)
        return self._apply_response(
            row_id, patch, base_version, reason,
            success=resp.success, new_version=resp.new_version, conflict=resp.conflict, error=resp.error,
        )

    def commit_pending(self, row_id: str, reason: str) -> CommitOutcome:
        """Commit the ledger's patch for a row against the version it recorded."""
        entry = self._ledger.get_entry(row_id)
        if entry is None:
            raise EditorError(f"no pending edits for row '{row_id}'")
        return self.commit_row(row_id, dict(entry.patch), entry.base_version, reason)

    # -- conflicts -------------------------------------------------------------

    def pending_conflict(self, row_id: str) -> ConflictRecord | None:
        pending = self._conflicts.get(row_id)
        return pending.record if pending is not None else None

    def resolve_conflict(
        self,
        row_id: str,
        resolution: Resolution,
        reason: str | None = None,
    ) -> CommitOutcome | None:
        """Close a pending conflict.

        Returns:
            The new commit outcome for RETRY, None for REFRESH and CANCEL.

        Raises:
            ConflictResolutionError: If the row has no pending conflict.
        """
        pending = self._conflicts.get(row_id)
        if pending is None:
            raise ConflictResolutionError(f"row '{row_id}' has no pending conflict")

        if resolution is Resolution.RETRY:
            del self._conflicts[row_id]
            try:
                return self.commit_row(row_id, pending.patch, pending.base_version, reason or pending.reason)
            except EditorError:
                self._conflicts.setdefault(row_id, pending)
                raise

        if resolution is Resolution.REFRESH:
            # Fetch first: a failed fetch leaves the conflict open
            row = self._persistence.fetch_row(self._schema.entity_id, row_id)
            self._snapshots[row_id] = row
            logger.info("row %s refreshed to server version %s", row_id, row.version)
        else:
            logger.info("conflicting edit on row %s discarded", row_id)
        del self._conflicts[row_id]
        self._ledger.clear_row_edits(row_id)
        return None

    # -- batch -----------------------------------------------------------------

    def commit_batch(self, row_ids: Iterable[str], reason: str) -> BatchCommitResult:
        """Commit the ledger patches of several rows in one persistence call.

        Rows are validated independently; invalid rows come back FAILED with
        their validation result and are not sent. Each per-row answer is
        applied exactly as ``commit_row`` would.
        """
        reason = self._check_reason(reason)
        if not self._schema.permissions.can_edit:
            raise PermissionDeniedError(f"editing is not permitted for entity '{self._schema.entity_id}'")

        ordered = list(dict.fromkeys(row_ids))
        outcomes: dict[str, CommitOutcome] = {}
        updates: list[RowUpdate] = []
        for row_id in ordered:
            entry = self._ledger.get_entry(row_id)
            if entry is None:
                outcomes[row_id] = CommitOutcome(row_id, CommitState.FAILED, error="no pending edits")
                continue
            if entry.status is EditStatus.SAVING or row_id in self._in_flight:
                outcomes[row_id] = CommitOutcome(row_id, CommitState.FAILED, error="commit already in progress")
                continue
            try:
                base = self.snapshot(row_id).values
            except TransportError as e:
                outcomes[row_id] = self._failed(row_id, str(e), transport=True)
                continue
            result = validate_record(self._schema, base, entry.patch)
            if not result.valid:
                self._log_violation(row_id, result)
                message = "; ".join(e.message for e in result.errors)
                self._ledger.update_status(row_id, EditStatus.ERROR, message)
                outcomes[row_id] = CommitOutcome(row_id, CommitState.FAILED, error=message, validation=result)
                continue
            updates.append(RowUpdate(row_id, entry.base_version, dict(entry.patch), reason))

        if updates:
            outcomes.update(self._submit_batch(updates))
        return BatchCommitResult.from_outcomes([outcomes[r] for r in ordered])

    def _submit_batch(self, updates: list[RowUpdate]) -> dict[str, CommitOutcome]:
        for u in updates:
            self._in_flight.add(u.row_id)
            self._ledger.update_status(u.row_id, EditStatus.SAVING)
        try:
            resp = self._persistence.commit_batch(self._schema.entity_id, updates)
        except TransportError as e:
            return {u.row_id: self._failed(u.row_id, str(e), transport=True) for u in updates}
        except Exception as e:
            for u in updates:
                self._ledger.update_status(u.row_id, EditStatus.ERROR, str(e))
            raise
        finally:
            for u in updates:
                self._in_flight.discard(u.row_id)

        by_row = {r.row_id: r for r in resp.per_row}
        outcomes: dict[str, CommitOutcome] = {}
        for u in updates:
            r = by_row.get(u.row_id)
            if r is None:
                outcomes[u.row_id] = self._failed(u.row_id, "no result returned for row")
                continue
            outcomes[u.row_id] = self._apply_response(
                u.row_id, u.patch, u.base_version, u.reason,
                success=r.success, new_version=r.new_version, conflict=r.conflict, error=r.error,
            )
        logger.info(
            "batch commit %s: %d committed, %d not committed",
            self._schema.entity_id, resp.success_count, resp.failure_count,
        )
        return outcomes

    # -- helpers ---------------------------------------------------------------

    def _check_not_saving(self, row_id: str) -> None:
        entry = self._ledger.get_entry(row_id)
        if row_id in self._in_flight or (entry is not None and entry.status is EditStatus.SAVING):
            raise CommitInProgressError(f"a commit for row '{row_id}' is already in progress")

    def _check_reason(self, reason: str | None) -> str:
        return validate_edit_reason(reason, self._reason_cfg.min_length, self._reason_cfg.max_length)

    def _check_patch(self, patch: dict[str, Any]) -> None:
        if not self._schema.permissions.can_edit:
            raise PermissionDeniedError(f"editing is not permitted for entity '{self._schema.entity_id}'")
        for name in patch:
            column = self._schema.column(name)
            if column is None or not column.editable:
                raise NonEditableColumnError(f"column '{name}' is not editable")

    def _apply_response(
        self,
        row_id: str,
        patch: dict[str, Any],
        base_version: int,
        reason: str,
        *,
        success: bool,
        new_version: int | None,
        conflict: ConflictRecord | None,
        error: str | None,
    ) -> CommitOutcome:
        if success:
            current = self._snapshots.get(row_id)
            version = new_version if new_version is not None else base_version + 1
            values = current.merged(patch) if current is not None else dict(patch)
            self._snapshots[row_id] = Row(
                row_id=row_id,
                version=version,
                values=values,
                last_updated_by=current.last_updated_by if current is not None else None,
                last_updated_on=current.last_updated_on if current is not None else None,
            )
            self._conflicts.pop(row_id, None)
            self._ledger.update_status(row_id, EditStatus.SAVED)
            logger.debug("row %s committed v%s -> v%s", row_id, base_version, version)
            return CommitOutcome(row_id, CommitState.COMMITTED, new_version=version)

        if conflict is not None:
            self._conflicts[row_id] = _PendingConflict(conflict, dict(patch), base_version, reason)
            self._ledger.update_status(row_id, EditStatus.ERROR, conflict.message)
            logger.warning(
                "version conflict on row %s: attempted v%s, server v%s",
                row_id, conflict.attempted_version, conflict.current_version,
            )
            self._log(row_id, "VERSION_CONFLICT", conflict.message, field=",".join(sorted(conflict.conflicting_fields)))
            return CommitOutcome(row_id, CommitState.CONFLICTED, conflict=conflict)

        return self._failed(row_id, error or "commit rejected")

    def _failed(self, row_id: str, message: str, *, transport: bool = False) -> CommitOutcome:
        self._ledger.update_status(row_id, EditStatus.ERROR, message)
        logger.error("commit of row %s failed: %s", row_id, message)
        self._log(row_id, "TRANSPORT_FAILURE" if transport else "COMMIT_REJECTED", message)
        return CommitOutcome(row_id, CommitState.FAILED, error=message)

    def _log_violation(self, row_id: str, result: ValidationResult) -> None:
        for err in result.errors:
            self._log(row_id, "SCHEMA_VIOLATION", err.message, field=err.field)

    def _log(self, row_id: str, error_type: str, message: str, *, field: str = "") -> None:
        if self._error_log is None:
            return
        self._error_log.append(
            ErrorRecord.create(self._schema.entity_id, -1, error_type, message, field=field, row_id=row_id)
        )
