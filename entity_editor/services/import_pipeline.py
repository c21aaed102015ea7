from __future__ import annotations

import logging
import time
from collections.abc import Iterable, Sequence
from datetime import UTC, date, datetime
from pathlib import Path
from typing import IO, Any

from ..errors import PermissionDeniedError, TransportError
from ..excel.error_report import render_error_report
from ..excel.reader import TemplateFormatError, parse_import_sheet, read_upload
from ..excel.template import (
    file_stem,
    render_sample_template,
    render_simple_template,
    render_template,
    template_filename,
)
from ..logging.error_log import ErrorLogBuffer
from ..models.config_models import EditorConfig, EditReasonConfig, ImportSettings, TemplateConfig
from ..models.error_record import ErrorRecord
from ..models.import_rows import (
    ImportCommitResult,
    ImportValidationOutcome,
    InsertRowResult,
    ParsedImportRow,
    ParsedSheet,
)
from ..models.processing_result import ImportRunResult
from ..models.schema import EntitySchema
from ..models.validation import FieldError
from ..persistence.protocols import InsertPersistence
from ..validation.engine import ISO_DATE_FORMAT, coerce_import_value, validate_edit_reason
from .progress import ProgressTracker

"""Bulk import pipeline.

template → operator fills rows offline → parse → validate every row →
insert the valid subset in one batched call → report the rest.

Rejected rows never block accepted ones, and an accepted row is never rolled
back because another row failed. Imports are plain inserts; no version check
applies to brand new rows.
"""

__all__ = [
    "ERROR_TYPES",
    "BulkImportService",
    "validate_import_rows",
]

logger = logging.getLogger(__name__)

# FieldError.code -> error log error_type
ERROR_TYPES = {
    "unknown_column": "UNKNOWN_COLUMN",
    "required_missing": "REQUIRED_MISSING",
}


def validate_import_rows(
    schema: EntitySchema,
    rows: Sequence[ParsedImportRow],
    date_format: str = ISO_DATE_FORMAT,
    progress: ProgressTracker | None = None,
) -> list[ImportValidationOutcome]:
    """Validate parsed rows against the schema; exactly one outcome per row.

    Unknown labels are reported without discarding the row's other fields.
    A required column whose label is absent from the sheet is reported on
    every row.
    """
    outcomes: list[ImportValidationOutcome] = []
    for row in rows:
        errors: list[FieldError] = []
        record: dict[str, Any] = {}
        for label, value in row.values.items():
            column = schema.column_by_label(label)
            if column is None:
                errors.append(FieldError(label, f"Unknown column: {label}", "unknown_column"))
                continue
            typed, err = coerce_import_value(column, value, date_format)
            record[column.name] = typed
            if err is not None:
                errors.append(err)
        for column in schema.required_columns:
            if column.label not in row.values:
                errors.append(FieldError(column.label, "Required field is missing", "required_missing"))
        outcomes.append(
            ImportValidationOutcome(
                row_number=row.row_number,
                valid=not errors,
                errors=tuple(errors),
                record=record,
            )
        )
        if progress is not None:
            progress.advance()
    return outcomes


class BulkImportService:
    """Template, parse, validate and commit stages for one entity schema."""

    def __init__(
        self,
        schema: EntitySchema,
        persistence: InsertPersistence,
        config: EditorConfig | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.schema = schema
        self._persistence = persistence
        self._error_log = error_log
        self._template_cfg = config.template if config is not None else TemplateConfig()
        self._import_cfg = config.imports if config is not None else ImportSettings()
        self._reason_cfg = config.edit_reason if config is not None else EditReasonConfig()

    # -- template --------------------------------------------------------------

    def generate_template(self, kind: str = "template", day: date | None = None) -> tuple[str, bytes]:
        """Build a workbook for the operator.

        Args:
            kind: ``template`` (upload layout), ``simple`` (all columns, header
                only) or ``sample`` (upload layout with example rows)
            day: Date stamped into the file name; defaults to today (UTC)

        Returns:
            (file name, xlsx bytes)
        """
        tpl = self._template_cfg
        if kind == "template":
            content = render_template(self.schema, tpl.data_rows, tpl.required_marker)
        elif kind == "simple":
            content = render_simple_template(self.schema, tpl.simple_rows)
        elif kind == "sample":
            content = render_sample_template(self.schema, tpl.sample_rows, tpl.required_marker, day)
        else:
            raise ValueError(f"unknown template kind: {kind!r}")
        return template_filename(self.schema.display_name, kind, day), content

    # -- parse / validate ------------------------------------------------------

    def parse_upload(self, source: Path | str | bytes | IO[bytes]) -> ParsedSheet:
        """Read and parse an uploaded workbook.

        Raises:
            TemplateFormatError: If the workbook is unreadable or lacks the
                template layout. The failure is also recorded in the error log.
        """
        try:
            sheet_name, df = read_upload(source, self._import_cfg.keep_na_strings)
            sheet = parse_import_sheet(df, sheet_name, self._template_cfg.required_marker)
        except TemplateFormatError as e:
            self._log(-1, "FILE_FORMAT", str(e))
            raise
        logger.info(
            "parsed sheet '%s': %d data row(s), columns=%s",
            sheet.sheet_name, len(sheet.rows), sheet.labels,
        )
        return sheet

    def validate(self, rows: Sequence[ParsedImportRow], *, show_progress: bool = True) -> list[ImportValidationOutcome]:
        with ProgressTracker(len(rows), enabled=None if show_progress else False) as progress:
            outcomes = validate_import_rows(self.schema, rows, self._import_cfg.date_format, progress)
        for outcome in outcomes:
            for err in outcome.errors:
                self._log(outcome.row_number, ERROR_TYPES.get(err.code, "SCHEMA_VIOLATION"), err.message, field=err.field)
        invalid = sum(1 for o in outcomes if not o.valid)
        if invalid:
            logger.warning("%d of %d row(s) failed validation", invalid, len(outcomes))
        return outcomes

    # -- commit ----------------------------------------------------------------

    def commit_valid(self, outcomes: Iterable[ImportValidationOutcome], reason: str) -> ImportCommitResult:
        """Insert every valid row in one batched call.

        No call is made when nothing is valid. A transport failure marks every
        submitted row failed.

        Raises:
            PermissionDeniedError: If the schema does not allow adding rows.
            EditReasonError: If the reason is missing or out of bounds.
        """
        if not self.schema.permissions.can_add:
            raise PermissionDeniedError(f"adding rows is not permitted for entity '{self.schema.entity_id}'")
        reason = validate_edit_reason(reason, self._reason_cfg.min_length, self._reason_cfg.max_length)

        valid = [o for o in outcomes if o.valid]
        if not valid:
            logger.info("no valid rows to insert")
            return ImportCommitResult.empty()

        try:
            resp = self._persistence.insert_batch(self.schema.entity_id, [dict(o.record) for o in valid], reason)
        except TransportError as e:
            logger.error("batch insert into %s failed: %s", self.schema.entity_id, e)
            failed = [
                InsertRowResult(row_number=o.row_number, success=False, errors={"_row": str(e)})
                for o in valid
            ]
            for r in failed:
                self._log(r.row_number, "TRANSPORT_FAILURE", str(e))
            return ImportCommitResult(success_count=0, failure_count=len(failed), results=failed)

        by_index = {r.index: r for r in resp.per_index}
        results: list[InsertRowResult] = []
        for index, outcome in enumerate(valid):
            r = by_index.get(index)
            if r is None:
                result = InsertRowResult(outcome.row_number, False, errors={"_row": "no result returned for row"})
            else:
                result = InsertRowResult(outcome.row_number, r.success, r.row_id, r.errors)
            if not result.success:
                for fld, message in (result.errors or {"_row": "insert rejected"}).items():
                    self._log(outcome.row_number, "INSERT_REJECTED", message, field="" if fld == "_row" else fld)
            results.append(result)

        ok = sum(1 for r in results if r.success)
        logger.info("inserted %d of %d valid row(s) into %s", ok, len(results), self.schema.entity_id)
        return ImportCommitResult(success_count=ok, failure_count=len(results) - ok, results=results)

    # -- reports ---------------------------------------------------------------

    def write_error_report(self, outcomes: Sequence[ImportValidationOutcome], path: Path) -> Path | None:
        """Write the error report workbook; nothing is written when every row is valid."""
        if all(o.valid for o in outcomes):
            return None
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(render_error_report(outcomes))
        logger.info("error report written: %s", path)
        return path

    def default_report_path(self, day: date | None = None) -> Path:
        day = day or datetime.now(UTC).date()
        name = f"{file_stem(self.schema.display_name)}_Upload_Errors_{day.isoformat()}.xlsx"
        return Path(self._import_cfg.error_report_dir) / name

    # -- end to end ------------------------------------------------------------

    def run(
        self,
        source: Path | str | bytes | IO[bytes],
        reason: str,
        *,
        dry_run: bool = False,
        show_progress: bool = True,
    ) -> ImportRunResult:
        """Parse, validate and (unless ``dry_run``) commit an upload.

        The reason and the add permission are checked before the file is read
        so a bad request fails fast.
        """
        if not dry_run:
            if not self.schema.permissions.can_add:
                raise PermissionDeniedError(f"adding rows is not permitted for entity '{self.schema.entity_id}'")
            validate_edit_reason(reason, self._reason_cfg.min_length, self._reason_cfg.max_length)

        start_time = datetime.now(UTC)
        t0 = time.perf_counter()

        sheet = self.parse_upload(source)
        outcomes = self.validate(sheet.rows, show_progress=show_progress)
        commit = None if dry_run else self.commit_valid(outcomes, reason)

        elapsed = time.perf_counter() - t0
        valid_rows = sum(1 for o in outcomes if o.valid)
        return ImportRunResult(
            entity_id=self.schema.entity_id,
            sheet_rows=sheet.total_rows,
            parsed_rows=len(sheet.rows),
            valid_rows=valid_rows,
            invalid_rows=len(outcomes) - valid_rows,
            inserted_rows=commit.success_count if commit is not None else 0,
            failed_rows=commit.failure_count if commit is not None else 0,
            start_time=start_time,
            end_time=datetime.now(UTC),
            elapsed_seconds=elapsed,
            throughput_rows_per_sec=len(sheet.rows) / elapsed if elapsed > 0 else 0.0,
            dry_run=dry_run,
            outcomes=outcomes,
            commit=commit,
        )

    def _log(self, row: int, error_type: str, message: str, *, field: str = "") -> None:
        if self._error_log is None:
            return
        self._error_log.append(ErrorRecord.create(self.schema.entity_id, row, error_type, message, field=field))
