from __future__ import annotations

import json

import jsonschema
import pytest

from entity_editor.logging.error_log import ErrorLogBuffer
from entity_editor.models.error_record import ErrorRecord
from entity_editor.persistence.schema_file import ENTITY_SCHEMA_PATH

"""Error log JSON schema contract test."""

SCHEMA_PATH = ENTITY_SCHEMA_PATH.parent / "error_log_schema.json"


@pytest.fixture()
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_error_log_schema_valid_example(schema):
    record = {
        "timestamp": "2026-10-19T10:12:33Z",
        "entity": "SERVICE_PROFILE",
        "row": 6,
        "row_id": "",
        "field": "Status",
        "error_type": "SCHEMA_VIOLATION",
        "message": "Must be one of: Active, Inactive, Pending",
    }
    jsonschema.validate(record, schema)


def test_error_log_schema_rejects_extra_key(schema):
    record = ErrorRecord.create("SERVICE_PROFILE", 6, "SCHEMA_VIOLATION", "bad")
    data = {**json.loads(record.to_json_line()), "extra": "not allowed"}
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(data, schema)


def test_error_log_schema_rejects_lowercase_type(schema):
    data = json.loads(ErrorRecord.create("SERVICE_PROFILE", 6, "schema_violation", "bad").to_json_line())
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(data, schema)


@pytest.mark.parametrize(
    "error_type",
    ["FILE_FORMAT", "UNKNOWN_COLUMN", "REQUIRED_MISSING", "SCHEMA_VIOLATION",
     "INSERT_REJECTED", "VERSION_CONFLICT", "TRANSPORT_FAILURE", "COMMIT_REJECTED"],
)
def test_flushed_lines_match_schema(schema, tmp_path, error_type):
    buf = ErrorLogBuffer(tmp_path)
    buf.append(ErrorRecord.create("SERVICE_PROFILE", -1, error_type, "message", row_id="r1"))
    path = buf.flush()
    for line in path.read_text(encoding="utf-8").splitlines():
        jsonschema.validate(json.loads(line), schema)


def test_unknown_row_sentinel_is_minus_one(schema):
    data = json.loads(ErrorRecord.create("SERVICE_PROFILE", -2, "FILE_FORMAT", "x").to_json_line())
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(data, schema)
