from __future__ import annotations

from datetime import UTC, datetime

import pytest

from entity_editor.models.processing_result import ImportRunResult
from entity_editor.services.summary import format_number, render_summary_line


def _result(**overrides) -> ImportRunResult:
    now = datetime.now(UTC)
    values = dict(
        entity_id="SERVICE_PROFILE",
        sheet_rows=13,
        parsed_rows=9,
        valid_rows=8,
        invalid_rows=1,
        inserted_rows=8,
        failed_rows=0,
        start_time=now,
        end_time=now,
        elapsed_seconds=1.5,
        throughput_rows_per_sec=6.0,
    )
    values.update(overrides)
    return ImportRunResult(**values)


def test_render_summary_line():
    assert render_summary_line(_result()) == (
        "SUMMARY rows=13 parsed=9 valid=8 invalid=1 inserted=8 failed=0 "
        "elapsed_sec=1.5 throughput_rps=6"
    )


def test_zero_elapsed_renders_plain_zero():
    line = render_summary_line(_result(elapsed_seconds=0.0, throughput_rows_per_sec=0.0))
    assert line.endswith("elapsed_sec=0 throughput_rps=0")


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (0, "0"),
        (2.0, "2"),
        (0.0004, "0.0004"),
        (0.00000012, "0"),
        (12.3456, "12.346"),
        (1234567.0, "1234567"),
    ],
)
def test_format_number(value, expected):
    assert format_number(value) == expected


def test_has_failures():
    assert _result().has_failures
    assert not _result(invalid_rows=0, valid_rows=9).has_failures
    assert _result(invalid_rows=0, failed_rows=1).has_failures
