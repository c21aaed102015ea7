from __future__ import annotations

from dataclasses import replace
from datetime import date

import pytest

from entity_editor.errors import EditReasonError, PermissionDeniedError, TransportError
from entity_editor.excel.reader import TemplateFormatError
from entity_editor.logging.error_log import ErrorLogBuffer
from entity_editor.models.import_rows import ImportValidationOutcome, ParsedImportRow
from entity_editor.models.schema import EntityPermissions
from entity_editor.models.validation import FieldError
from entity_editor.persistence.memory import FaultInjector, InMemoryEntityStore
from entity_editor.services.import_pipeline import BulkImportService, validate_import_rows


class SpyInserts:
    def __init__(self, inner=None, error: Exception | None = None) -> None:
        self.inner = inner
        self.error = error
        self.calls: list[list[dict]] = []

    def insert_batch(self, entity_id, records, reason):
        self.calls.append(records)
        if self.error is not None:
            raise self.error
        return self.inner.insert_batch(entity_id, records, reason)


@pytest.fixture()
def empty_store(schema) -> InMemoryEntityStore:
    return InMemoryEntityStore([schema])


def test_ten_row_scenario(schema, empty_store, make_upload, ten_row_upload, reason):
    path = make_upload(ten_row_upload)
    result = BulkImportService(schema, empty_store).run(path, reason, show_progress=False)
    assert result.parsed_rows == 9
    assert result.valid_rows == 8
    assert result.invalid_rows == 1
    assert result.inserted_rows == 8
    assert result.failed_rows == 0
    invalid = [o for o in result.outcomes if not o.valid]
    assert invalid[0].row_number == 6  # 3rd data row sits on sheet row 6
    assert invalid[0].errors[0].message == "Must be one of: Active, Inactive, Pending"
    assert len(empty_store.rows(schema.entity_id)) == 8
    assert result.has_failures


def test_validated_records_are_typed(schema):
    rows = validate_import_rows(
        schema,
        [ParsedImportRow(4, {"Service Name": "A", "Status": "Active", "Priority": 5.0,
                             "Public": "no", "Start Date": "2026-02-03", "Description": None})],
    )
    assert rows[0].valid
    assert rows[0].record == {
        "service_name": "A", "status": "Active", "priority": 5,
        "is_public": False, "start_date": "2026-02-03", "description": "",
    }


def test_unknown_column_keeps_other_fields(schema):
    outcome = validate_import_rows(
        schema, [ParsedImportRow(4, {"Service Name": "A", "Status": "Active", "Colour": "red"})]
    )[0]
    assert not outcome.valid
    assert [(e.field, e.message, e.code) for e in outcome.errors] == [
        ("Colour", "Unknown column: Colour", "unknown_column")
    ]
    assert outcome.record == {"service_name": "A", "status": "Active"}


def test_missing_required_column_reported_per_row(schema):
    rows = [ParsedImportRow(4, {"Service Name": "A"}), ParsedImportRow(5, {"Service Name": "B"})]
    outcomes = validate_import_rows(schema, rows)
    assert len(outcomes) == 2
    for o in outcomes:
        assert [(e.field, e.message) for e in o.errors] == [("Status", "Required field is missing")]


def test_every_error_of_a_row_collected(schema):
    outcome = validate_import_rows(
        schema, [ParsedImportRow(9, {"Service Name": "", "Status": "Nope", "Priority": "x"})]
    )[0]
    assert [e.field for e in outcome.errors] == ["Service Name", "Status", "Priority"]


def test_no_valid_rows_makes_no_call(schema, reason):
    spy = SpyInserts()
    service = BulkImportService(schema, spy)
    outcomes = [ImportValidationOutcome(4, False)]
    result = service.commit_valid(outcomes, reason)
    assert (result.success_count, result.failure_count) == (0, 0)
    assert spy.calls == []


def test_single_batched_call_maps_rows(schema, empty_store, reason):
    spy = SpyInserts(empty_store)
    outcomes = [
        ImportValidationOutcome(4, True, (), {"service_name": "A", "status": "Active"}),
        ImportValidationOutcome(5, False),
        ImportValidationOutcome(8, True, (), {"service_name": "B", "status": "Pending"}),
    ]
    result = BulkImportService(schema, spy).commit_valid(outcomes, reason)
    assert len(spy.calls) == 1
    assert len(spy.calls[0]) == 2
    assert [(r.row_number, r.success) for r in result.results] == [(4, True), (8, True)]
    assert result.results[1].row_id == "service_profile-2"


def test_insert_failures_mapped_to_source_rows(schema, reason):
    store = InMemoryEntityStore([schema], fault_injector=FaultInjector(0, insert_failure_rate=1.0))
    log = ErrorLogBuffer()
    outcomes = [ImportValidationOutcome(12, True, (), {"service_name": "A", "status": "Active"})]
    result = BulkImportService(schema, store, error_log=log).commit_valid(outcomes, reason)
    assert result.failure_count == 1
    assert result.results[0].row_number == 12
    assert result.results[0].errors == {"_row": "simulated insert failure"}
    assert [(r.row, r.error_type) for r in log.records] == [(12, "INSERT_REJECTED")]


def test_transport_error_fails_every_submitted_row(schema, reason):
    spy = SpyInserts(error=TransportError("connection reset"))
    outcomes = [
        ImportValidationOutcome(4, True, (), {"service_name": "A", "status": "Active"}),
        ImportValidationOutcome(5, True, (), {"service_name": "B", "status": "Active"}),
    ]
    result = BulkImportService(schema, spy).commit_valid(outcomes, reason)
    assert (result.success_count, result.failure_count) == (0, 2)
    assert all(r.errors == {"_row": "connection reset"} for r in result.results)


def test_commit_requires_add_permission(schema, empty_store, reason):
    no_add = replace(schema, permissions=EntityPermissions(can_add=False))
    with pytest.raises(PermissionDeniedError):
        BulkImportService(no_add, empty_store).commit_valid([], reason)


def test_commit_requires_reason(schema, empty_store):
    with pytest.raises(EditReasonError):
        BulkImportService(schema, empty_store).commit_valid([], "short")


def test_run_checks_reason_before_reading(schema, empty_store, tmp_path):
    with pytest.raises(EditReasonError):
        BulkImportService(schema, empty_store).run(tmp_path / "missing.xlsx", "")


def test_dry_run_inserts_nothing(schema, empty_store, make_upload, ten_row_upload):
    result = BulkImportService(schema, empty_store).run(
        make_upload(ten_row_upload), "", dry_run=True, show_progress=False
    )
    assert result.dry_run
    assert result.commit is None
    assert result.inserted_rows == 0
    assert result.valid_rows == 8
    assert empty_store.rows(schema.entity_id) == []


def test_format_error_logged(schema, empty_store, make_upload, reason):
    log = ErrorLogBuffer()
    path = make_upload([], header=[["Service Name *"], ["[STRING]"]])
    with pytest.raises(TemplateFormatError):
        BulkImportService(schema, empty_store, error_log=log).run(path, reason, show_progress=False)
    assert [(r.row, r.error_type) for r in log.records] == [(-1, "FILE_FORMAT")]


def test_validation_errors_logged_by_type(schema, empty_store):
    log = ErrorLogBuffer()
    service = BulkImportService(schema, empty_store, error_log=log)
    service.validate(
        [ParsedImportRow(4, {"Service Name": "A", "Colour": "x"}), ParsedImportRow(5, {"Service Name": "", "Status": "Active"})],
        show_progress=False,
    )
    types = [(r.row, r.field, r.error_type) for r in log.records]
    assert types == [
        (4, "Colour", "UNKNOWN_COLUMN"),
        (4, "Status", "REQUIRED_MISSING"),
        (5, "Service Name", "SCHEMA_VIOLATION"),
    ]


def test_generate_template_kinds(schema, empty_store):
    service = BulkImportService(schema, empty_store)
    name, content = service.generate_template("sample", date(2026, 10, 19))
    assert name == "Service_Profile_Sample_2026-10-19.xlsx"
    assert content[:2] == b"PK"
    with pytest.raises(ValueError):
        service.generate_template("pdf")


def test_write_error_report_only_when_rows_invalid(schema, empty_store, tmp_path):
    service = BulkImportService(schema, empty_store)
    ok = ImportValidationOutcome(4, True)
    assert service.write_error_report([ok], tmp_path / "r.xlsx") is None
    bad = ImportValidationOutcome(5, False, (FieldError("Status", "Required field is missing"),), {})
    path = service.write_error_report([ok, bad], tmp_path / "out" / "r.xlsx")
    assert path == tmp_path / "out" / "r.xlsx"
    assert path.exists()


def test_default_report_path(schema, empty_store):
    path = BulkImportService(schema, empty_store).default_report_path(date(2026, 10, 19))
    assert path.as_posix() == "reports/Service_Profile_Upload_Errors_2026-10-19.xlsx"


def test_report_and_template_names_share_stem(schema, empty_store):
    spaced = replace(schema, display_name=" Service \t Profile ")
    service = BulkImportService(spaced, empty_store)
    report = service.default_report_path(date(2026, 10, 19))
    template_name, _ = service.generate_template("template", date(2026, 10, 19))
    assert report.name == "Service_Profile_Upload_Errors_2026-10-19.xlsx"
    assert template_name == "Service_Profile_BulkUpload_Template_2026-10-19.xlsx"
