from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from ..models.commit import ConflictRecord
from ..models.row import Row
from ..models.schema import EntitySchema, RegionContext

"""Collaborator contracts consumed by the editor core.

Schema retrieval and persistence are injected, never looked up globally, so
the validation engine, ledger and commit protocol run against deterministic
fakes in tests. Implementations raise ``TransportError`` for failures outside
the conflict path; conflicts and per-row rejections are returned as data.
"""

__all__ = [
    "SchemaProvider",
    "RowPersistence",
    "InsertPersistence",
    "SingleCommitResponse",
    "RowUpdate",
    "RowCommitResult",
    "BatchCommitResponse",
    "IndexResult",
    "InsertBatchResponse",
]


@dataclass(frozen=True)
class SingleCommitResponse:
    """Answer to a single-row OCC update: success, conflict, or failure."""
    success: bool
    new_version: int | None = None
    conflict: ConflictRecord | None = None
    error: str | None = None


@dataclass(frozen=True)
class RowUpdate:
    row_id: str
    base_version: int
    patch: dict[str, Any]
    reason: str


@dataclass(frozen=True)
class RowCommitResult:
    row_id: str
    success: bool
    new_version: int | None = None
    conflict: ConflictRecord | None = None
    error: str | None = None


@dataclass(frozen=True)
class BatchCommitResponse:
    success_count: int
    failure_count: int
    per_row: list[RowCommitResult] = field(default_factory=list)


@dataclass(frozen=True)
class IndexResult:
    index: int  # Position in the submitted record list
    success: bool
    row_id: str | None = None
    errors: dict[str, str] | None = None


@dataclass(frozen=True)
class InsertBatchResponse:
    success_count: int
    failure_count: int
    per_index: list[IndexResult] = field(default_factory=list)


class SchemaProvider(Protocol):
    def fetch_schema(self, entity_id: str, region: RegionContext) -> EntitySchema: ...


class RowPersistence(Protocol):
    def commit_single(
        self,
        entity_id: str,
        row_id: str,
        base_version: int,
        patch: dict[str, Any],
        reason: str,
    ) -> SingleCommitResponse: ...

    def commit_batch(self, entity_id: str, updates: list[RowUpdate]) -> BatchCommitResponse: ...

    def fetch_row(self, entity_id: str, row_id: str) -> Row: ...


class InsertPersistence(Protocol):
    def insert_batch(
        self,
        entity_id: str,
        records: list[dict[str, Any]],
        reason: str,
    ) -> InsertBatchResponse: ...
