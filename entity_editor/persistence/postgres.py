from __future__ import annotations

import logging
import re
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from typing import Any

import psycopg2
from psycopg2.extras import execute_values

from ..errors import TransportError
from ..models.commit import ConflictRecord
from ..models.row import Row
from .protocols import (
    BatchCommitResponse,
    IndexResult,
    InsertBatchResponse,
    RowCommitResult,
    RowUpdate,
    SingleCommitResponse,
)

"""PostgreSQL persistence collaborator.

Each entity maps to a table holding ``id``, ``version``, ``last_updated_by``,
``last_updated_on`` and one column per schema column name.

- Edits: ``UPDATE ... SET ..., version = version + 1 WHERE id = %s AND
  version = %s RETURNING version``. No row back means either a version
  conflict (row exists) or a missing row (failure).
- Inserts: one ``execute_values`` INSERT for the whole batch. If the batch is
  rejected it is rolled back to a savepoint and replayed row by row under
  per-row savepoints so every index gets its own verdict.

The cursor is expected to come from a connection in autocommit mode; every
operation brackets itself with explicit BEGIN/COMMIT.
"""

__all__ = [
    "PostgresEntityStore",
]

logger = logging.getLogger(__name__)

_IDENT = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

# Connection-level problems; anything else from psycopg2 is a server-side rejection
_TRANSPORT_ERRORS = (psycopg2.OperationalError, psycopg2.InterfaceError)


def _quote(name: str) -> str:
    if not _IDENT.match(name):
        raise ValueError(f"invalid SQL identifier: {name!r}")
    return f'"{name}"'


class PostgresEntityStore:
    """Row and insert persistence over a psycopg2 cursor."""

    def __init__(
        self,
        cursor: Any,
        tables: dict[str, str],
        *,
        actor: str = "system",
        page_size: int = 1000,
    ) -> None:
        self._cursor = cursor
        self._tables = dict(tables)
        self._actor = actor
        self._page_size = page_size

    def _table(self, entity_id: str) -> str:
        table = self._tables.get(entity_id, entity_id.lower())
        return _quote(table)

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        cur = self._cursor
        try:
            cur.execute("BEGIN")
            yield
            cur.execute("COMMIT")
        except Exception:
            try:
                cur.execute("ROLLBACK")
            except _TRANSPORT_ERRORS:  # pragma: no cover
                logger.warning("rollback failed; connection lost")
            raise

    # -- RowPersistence --------------------------------------------------------

    def fetch_row(self, entity_id: str, row_id: str) -> Row:
        cur = self._cursor
        try:
            cur.execute(f'SELECT * FROM {self._table(entity_id)} WHERE "id" = %s', (row_id,))
            found = cur.fetchone()
        except psycopg2.Error as e:
            raise TransportError(f"failed fetching row '{row_id}': {e}") from e
        if found is None:
            raise TransportError(f"Row '{row_id}' not found in {entity_id}")
        names = [d[0] for d in cur.description]
        data = dict(zip(names, found, strict=False))
        updated_on = data.get("last_updated_on")
        if updated_on is not None and hasattr(updated_on, "isoformat"):
            data["last_updated_on"] = updated_on.isoformat()
        return Row.from_dict(data)

    def commit_single(
        self,
        entity_id: str,
        row_id: str,
        base_version: int,
        patch: dict[str, Any],
        reason: str,
    ) -> SingleCommitResponse:
        table = self._table(entity_id)
        columns = list(patch)
        assignments = "".join(f"{_quote(c)} = %s, " for c in columns)
        sql = (
            f"UPDATE {table} SET {assignments}"
            '"version" = "version" + 1, "last_updated_by" = %s, "last_updated_on" = now() '
            'WHERE "id" = %s AND "version" = %s RETURNING "version"'
        )
        params = [patch[c] for c in columns] + [self._actor, row_id, base_version]
        cur = self._cursor
        current = None
        try:
            with self._transaction():
                cur.execute(sql, params)
                updated = cur.fetchone()
                if updated is None:
                    cur.execute(f'SELECT "version" FROM {table} WHERE "id" = %s', (row_id,))
                    current = cur.fetchone()
        except _TRANSPORT_ERRORS as e:
            raise TransportError(str(e)) from e
        except psycopg2.Error as e:
            return SingleCommitResponse(success=False, error=str(e).strip())

        if updated is not None:
            logger.debug("committed %s/%s -> v%s (%s)", entity_id, row_id, updated[0], reason)
            return SingleCommitResponse(success=True, new_version=int(updated[0]))
        if current is None:
            return SingleCommitResponse(success=False, error=f"Row '{row_id}' not found")
        return SingleCommitResponse(
            success=False,
            conflict=ConflictRecord(
                current_version=int(current[0]),
                attempted_version=base_version,
                conflicting_fields=frozenset(patch),
            ),
        )

    def commit_batch(self, entity_id: str, updates: list[RowUpdate]) -> BatchCommitResponse:
        results: list[RowCommitResult] = []
        for u in updates:
            try:
                resp = self.commit_single(entity_id, u.row_id, u.base_version, u.patch, u.reason)
            except TransportError as e:
                results.append(RowCommitResult(row_id=u.row_id, success=False, error=str(e)))
                continue
            results.append(
                RowCommitResult(
                    row_id=u.row_id,
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
        if not records:
            return InsertBatchResponse(success_count=0, failure_count=0, per_index=[])

        columns: list[str] = []
        for rec in records:
            columns.extend(c for c in rec if c not in columns)
        cols_sql = ",".join(_quote(c) for c in [*columns, "version", "last_updated_by"])
        sql = f"INSERT INTO {self._table(entity_id)} ({cols_sql}) VALUES %s RETURNING \"id\""
        rows = [self._values(rec, columns) for rec in records]

        cur = self._cursor
        try:
            with self._transaction():
                cur.execute("SAVEPOINT bulk_insert")
                try:
                    returned = execute_values(cur, sql, rows, page_size=self._page_size, fetch=True)
                    results = [
                        IndexResult(index=i, success=True, row_id=str(r[0]))
                        for i, r in enumerate(returned)
                    ]
                except _TRANSPORT_ERRORS:
                    raise
                except psycopg2.Error as e:
                    logger.info("batch insert into %s rejected (%s); replaying row by row", entity_id, e)
                    cur.execute("ROLLBACK TO SAVEPOINT bulk_insert")
                    results = self._insert_row_by_row(sql, rows)
        except _TRANSPORT_ERRORS as e:
            raise TransportError(str(e)) from e

        ok = sum(1 for r in results if r.success)
        logger.debug("inserted %d/%d rows into %s (%s)", ok, len(records), entity_id, reason)
        return InsertBatchResponse(success_count=ok, failure_count=len(results) - ok, per_index=results)

    def _values(self, record: dict[str, Any], columns: Sequence[str]) -> tuple[Any, ...]:
        return tuple(record.get(c) for c in columns) + (1, self._actor)

    def _insert_row_by_row(self, sql: str, rows: list[tuple[Any, ...]]) -> list[IndexResult]:
        cur = self._cursor
        results: list[IndexResult] = []
        for index, row in enumerate(rows):
            cur.execute("SAVEPOINT insert_row")
            try:
                returned = execute_values(cur, sql, [row], fetch=True)
            except _TRANSPORT_ERRORS:
                raise
            except psycopg2.Error as e:
                cur.execute("ROLLBACK TO SAVEPOINT insert_row")
                results.append(IndexResult(index=index, success=False, errors={"_row": str(e).strip()}))
                continue
            cur.execute("RELEASE SAVEPOINT insert_row")
            results.append(IndexResult(index=index, success=True, row_id=str(returned[0][0])))
        return results
