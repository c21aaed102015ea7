from __future__ import annotations

import itertools
import logging
import random
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from typing import Any

from ..errors import SchemaNotFoundError, TransportError
from ..models.commit import ConflictRecord
from ..models.row import Row
from ..models.schema import EntitySchema, RegionContext
from .protocols import (
    BatchCommitResponse,
    IndexResult,
    InsertBatchResponse,
    RowCommitResult,
    RowUpdate,
    SingleCommitResponse,
)

"""Deterministic in-memory schema provider and row store.

Used by the test suite and by the CLI when no database is reachable (mock
mode). The OCC check is real: a commit is accepted only when the caller's
base version equals the stored version, and the stored version then grows by
exactly one.

Simulated conflicts and transport failures come only from an explicitly
injected, seedable ``FaultInjector``; without one the store never fails on
its own.
"""

__all__ = [
    "FaultInjector",
    "InMemoryEntityStore",
]

logger = logging.getLogger(__name__)

FAULT_CONFLICT = "conflict"
FAULT_FAILURE = "failure"


class FaultInjector:
    """Seedable source of simulated conflicts and failures.

    Rates are probabilities in [0, 1]. Two injectors built with the same seed
    and rates produce the same fault sequence.
    """

    def __init__(
        self,
        seed: int = 0,
        *,
        conflict_rate: float = 0.0,
        failure_rate: float = 0.0,
        insert_failure_rate: float = 0.0,
    ) -> None:
        for name, rate in (
            ("conflict_rate", conflict_rate),
            ("failure_rate", failure_rate),
            ("insert_failure_rate", insert_failure_rate),
        ):
            if not 0.0 <= rate <= 1.0:
                raise ValueError(f"{name} must be between 0 and 1, got {rate}")
        self._rng = random.Random(seed)
        self.conflict_rate = conflict_rate
        self.failure_rate = failure_rate
        self.insert_failure_rate = insert_failure_rate

    def next_commit_fault(self) -> str | None:
        """Draw the fault for the next row commit: 'conflict', 'failure' or None."""
        roll = self._rng.random()
        if roll < self.conflict_rate:
            return FAULT_CONFLICT
        if roll < self.conflict_rate + self.failure_rate:
            return FAULT_FAILURE
        return None

    def next_insert_fails(self) -> bool:
        return self._rng.random() < self.insert_failure_rate


@dataclass
class _EntityTable:
    schema: EntitySchema
    regions: set[RegionContext] | None
    rows: dict[str, Row]


class InMemoryEntityStore:
    """Schema provider plus single-row, batched-edit and batched-insert persistence."""

    def __init__(
        self,
        schemas: list[EntitySchema] | None = None,
        *,
        fault_injector: FaultInjector | None = None,
        actor: str = "system",
    ) -> None:
        self._tables: dict[str, _EntityTable] = {}
        self._fault_injector = fault_injector
        self._actor = actor
        self._ids = itertools.count(1)
        self.change_log: list[tuple[str, str, int, str]] = []  # (entity, row_id, version, reason)
        for schema in schemas or []:
            self.register_schema(schema)

    # -- setup ---------------------------------------------------------------

    def register_schema(self, schema: EntitySchema, regions: list[RegionContext] | None = None) -> None:
        self._tables[schema.entity_id] = _EntityTable(
            schema=schema,
            regions=set(regions) if regions else None,
            rows={},
        )

    def seed_rows(self, entity_id: str, rows: list[Row]) -> None:
        table = self._table(entity_id)
        for row in rows:
            table.rows[row.row_id] = row

    def rows(self, entity_id: str) -> list[Row]:
        return list(self._table(entity_id).rows.values())

    def _table(self, entity_id: str) -> _EntityTable:
        try:
            return self._tables[entity_id]
        except KeyError:
            raise SchemaNotFoundError(f"Entity metadata not found for {entity_id}") from None

    # -- SchemaProvider --------------------------------------------------------

    def fetch_schema(self, entity_id: str, region: RegionContext) -> EntitySchema:
        table = self._table(entity_id)
        if table.regions is not None and region not in table.regions:
            raise SchemaNotFoundError(
                f"Entity {entity_id} is not available for {region.country}/{region.business_unit}"
            )
        return table.schema

    # -- RowPersistence --------------------------------------------------------

    def fetch_row(self, entity_id: str, row_id: str) -> Row:
        row = self._table(entity_id).rows.get(row_id)
        if row is None:
            raise TransportError(f"Row '{row_id}' not found in {entity_id}")
        return row

    def commit_single(
        self,
        entity_id: str,
        row_id: str,
        base_version: int,
        patch: dict[str, Any],
        reason: str,
    ) -> SingleCommitResponse:
        table = self._table(entity_id)
        row = table.rows.get(row_id)
        if row is None:
            return SingleCommitResponse(success=False, error=f"Row '{row_id}' not found")

        if self._fault_injector is not None:
            fault = self._fault_injector.next_commit_fault()
            if fault == FAULT_FAILURE:
                raise TransportError(f"simulated transport failure committing row '{row_id}'")
            if fault == FAULT_CONFLICT:
                # Another operator got there first
                row = replace(row, version=row.version + 1, last_updated_by="another.operator")
                table.rows[row_id] = row
                logger.debug("fault injector: concurrent write on %s/%s -> v%s", entity_id, row_id, row.version)

        unknown = sorted(k for k in patch if table.schema.column(k) is None)
        if unknown:
            return SingleCommitResponse(success=False, error=f"Unknown field(s): {', '.join(unknown)}")

        if base_version != row.version:
            return SingleCommitResponse(
                success=False,
                conflict=ConflictRecord(
                    current_version=row.version,
                    attempted_version=base_version,
                    conflicting_fields=frozenset(patch),
                ),
            )

        updated = Row(
            row_id=row_id,
            version=row.version + 1,
            values=row.merged(patch),
            last_updated_by=self._actor,
            last_updated_on=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        )
        table.rows[row_id] = updated
        self.change_log.append((entity_id, row_id, updated.version, reason))
        return SingleCommitResponse(success=True, new_version=updated.version)

    def commit_batch(self, entity_id: str, updates: list[RowUpdate]) -> BatchCommitResponse:
        results: list[RowCommitResult] = []
        for update in updates:
            try:
                resp = self.commit_single(
                    entity_id, update.row_id, update.base_version, update.patch, update.reason
                )
            except TransportError as e:
                results.append(RowCommitResult(row_id=update.row_id, success=False, error=str(e)))
                continue
            results.append(
                RowCommitResult(
                    row_id=update.row_id,
                    success=resp.success,
                    new_version=resp.new_version,
                    conflict=resp.conflict,
                    error=resp.error,
                )
            )
        ok = sum(1 for r in results if r.success)
        return BatchCommitResponse(success_count=ok, failure_count=len(results) - ok, per_row=results)

    # -- InsertPersistence -----------------------------------------------------

    def insert_batch(self, entity_id: str, records: list[dict[str, Any]], reason: str) -> InsertBatchResponse:
        table = self._table(entity_id)
        results: list[IndexResult] = []
        for index, record in enumerate(records):
            if self._fault_injector is not None and self._fault_injector.next_insert_fails():
                results.append(IndexResult(index=index, success=False, errors={"_row": "simulated insert failure"}))
                continue
            missing = {
                c.name: f"{c.label} is required"
                for c in table.schema.required_columns
                if record.get(c.name) in (None, "")
            }
            if missing:
                results.append(IndexResult(index=index, success=False, errors=missing))
                continue
            row_id = f"{entity_id.lower()}-{next(self._ids)}"
            table.rows[row_id] = Row(
                row_id=row_id,
                version=1,
                values=dict(record),
                last_updated_by=self._actor,
                last_updated_on=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            )
            self.change_log.append((entity_id, row_id, 1, reason))
            results.append(IndexResult(index=index, success=True, row_id=row_id))
        ok = sum(1 for r in results if r.success)
        return InsertBatchResponse(success_count=ok, failure_count=len(results) - ok, per_index=results)
