from __future__ import annotations

import io
import json
from collections.abc import Iterable

import pandas as pd
from openpyxl.styles import Font

from ..models.import_rows import ImportValidationOutcome

"""Error report for rejected import rows.

One report line per violated rule, so a row with three problems yields three
lines. ``Data`` holds the JSON of the row's recovered record so the operator
can see what was read without reopening the upload.
"""

__all__ = [
    "ERROR_REPORT_COLUMNS",
    "ERROR_REPORT_SHEET",
    "build_error_report_frame",
    "render_error_report",
]

ERROR_REPORT_SHEET = "Errors"
ERROR_REPORT_COLUMNS = ["Row Number", "Field", "Error Message", "Data"]

_COLUMN_WIDTHS = (12, 25, 50, 60)


def build_error_report_frame(outcomes: Iterable[ImportValidationOutcome]) -> pd.DataFrame:
    lines: list[list[object]] = []
    for outcome in outcomes:
        if outcome.valid:
            continue
        data = json.dumps(outcome.record, ensure_ascii=False, default=str)
        for err in outcome.errors:
            lines.append([outcome.row_number, err.field, err.message, data])
    return pd.DataFrame(lines, columns=ERROR_REPORT_COLUMNS)


def render_error_report(outcomes: Iterable[ImportValidationOutcome]) -> bytes:
    """Error report workbook (single ``Errors`` sheet) as xlsx bytes."""
    frame = build_error_report_frame(outcomes)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=ERROR_REPORT_SHEET, index=False)
        ws = writer.sheets[ERROR_REPORT_SHEET]
        for idx, width in enumerate(_COLUMN_WIDTHS):
            ws.column_dimensions["ABCD"[idx]].width = width
        for cell in ws[1]:
            cell.font = Font(bold=True)
    return buf.getvalue()
