from __future__ import annotations

import io
import re
from collections.abc import Sequence
from datetime import UTC, date, datetime
from typing import Any

import pandas as pd
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.worksheet.worksheet import Worksheet

from ..models.schema import ColumnDescriptor, DataType, EntitySchema

"""Upload template generation.

Three workbook kinds are produced from a schema:

- ``template``: rows 1-3 are labels / ``[TYPE]`` tags / hints for every
  editable-or-required column, followed by blank data rows, plus an
  ``Instructions`` sheet. This is the layout ``excel.reader`` parses back.
- ``simple``: a single header row with every column's label and blank rows;
  the sheet is named after the entity.
- ``sample``: the template metadata rows followed by filled example rows.

Row builders return plain lists so layouts can be checked without a
workbook; ``render_*`` write xlsx bytes with pandas + openpyxl.
"""

__all__ = [
    "TEMPLATE_SHEET",
    "INSTRUCTIONS_SHEET",
    "SAMPLE_SHEET",
    "build_template_rows",
    "build_simple_template_rows",
    "build_sample_template_rows",
    "render_template",
    "render_simple_template",
    "render_sample_template",
    "file_stem",
    "simple_sheet_name",
    "template_filename",
]

TEMPLATE_SHEET = "Upload Template"
INSTRUCTIONS_SHEET = "Instructions"
SAMPLE_SHEET = "Sample Data"

_INVALID_SHEET_CHARS = re.compile(r"[:\\/?*\[\]]")
_MAX_SHEET_NAME = 31

_FILENAME_KINDS = {
    "template": "BulkUpload_Template",
    "simple": "Template",
    "sample": "Sample",
}

# Fill colours of metadata rows 1-3
_ROW_FILLS = ("F0F0F0", "E8F4F8", "FFF9E6")
_REQUIRED_COLOUR = "DB0011"


def _hint(column: ColumnDescriptor) -> str:
    rules: list[str] = []
    if column.required:
        rules.append("Required")
    if column.max_length:
        rules.append(f"Max {column.max_length} chars")
    if column.permitted_values:
        rules.append(f"Options: {', '.join(column.permitted_values)}")
    return " | ".join(rules) or "Any value"


def _metadata_rows(columns: Sequence[ColumnDescriptor], required_marker: str) -> list[list[Any]]:
    return [
        [f"{c.label}{required_marker}" if c.required else c.label for c in columns],
        [f"[{c.data_type.value}]" for c in columns],
        [_hint(c) for c in columns],
    ]


def build_template_rows(
    schema: EntitySchema,
    data_rows: int = 10,
    required_marker: str = " *",
) -> list[list[Any]]:
    """Rows of the upload template sheet.

    Args:
        schema: Entity schema; only editable or required columns are included
        data_rows: Number of blank data rows after the metadata rows
        required_marker: Suffix appended to labels of required columns

    Returns:
        ``3 + data_rows`` rows of equal width
    """
    columns = schema.template_columns
    rows = _metadata_rows(columns, required_marker)
    rows.extend([""] * len(columns) for _ in range(data_rows))
    return rows


def build_simple_template_rows(schema: EntitySchema, blank_rows: int = 50) -> list[list[Any]]:
    columns = schema.columns
    rows: list[list[Any]] = [[c.label for c in columns]]
    rows.extend([""] * len(columns) for _ in range(blank_rows))
    return rows


def _sample_value(column: ColumnDescriptor, i: int, day: date) -> Any:
    dt = column.data_type
    if dt is DataType.TEXT:
        text = f"Sample {column.label} {i + 1}"
        return text[: column.max_length] if column.max_length else text
    if dt is DataType.NUMBER:
        return (i + 1) * 10
    if dt is DataType.FLAG:
        return "TRUE" if i % 2 == 0 else "FALSE"
    if dt is DataType.ENUMERATED:
        values = column.permitted_values or ()
        return values[i % len(values)] if values else ""
    if dt is DataType.DATE:
        return day.isoformat()
    return ""


def build_sample_template_rows(
    schema: EntitySchema,
    sample_rows: int = 5,
    required_marker: str = " *",
    day: date | None = None,
) -> list[list[Any]]:
    """Template metadata rows followed by example rows that pass validation."""
    day = day or datetime.now(UTC).date()
    columns = schema.template_columns
    rows = _metadata_rows(columns, required_marker)
    for i in range(sample_rows):
        rows.append([_sample_value(c, i, day) for c in columns])
    return rows


def _instruction_rows(columns: Sequence[ColumnDescriptor]) -> list[list[str]]:
    rows = [
        ["Bulk Upload Instructions"],
        [""],
        ["1. Fill in the data rows (starting from row 4)"],
        ["2. Required fields are marked with an asterisk (*)"],
        ["3. Follow the data type format shown in row 2"],
        ["4. Respect validation rules shown in row 3"],
        ["5. Do NOT modify the header rows (rows 1-3)"],
        ["6. Do NOT modify column order"],
        ["7. Save the file and upload it back to the system"],
        [""],
        ["Column Details:"],
        [""],
    ]
    for c in columns:
        rows.append([
            c.label,
            c.data_type.value,
            "Required" if c.required else "Optional",
            f"Max {c.max_length} chars" if c.max_length else "",
            f"Valid values: {', '.join(c.permitted_values)}" if c.permitted_values else "",
        ])
    return rows


def _style_metadata_rows(ws: Worksheet, columns: Sequence[ColumnDescriptor]) -> None:
    for r, colour in enumerate(_ROW_FILLS, start=1):
        for c, column in enumerate(columns, start=1):
            cell = ws.cell(row=r, column=c)
            red = r == 1 and column.required
            cell.font = Font(bold=r == 1, color=_REQUIRED_COLOUR if red else "000000")
            cell.fill = PatternFill(fill_type="solid", fgColor=colour)
            cell.alignment = Alignment(horizontal="left", vertical="center")
    for c, column in enumerate(columns, start=1):
        ws.column_dimensions[get_column_letter(c)].width = max(len(column.label) + 5, 15)


def _write_sheet(writer: pd.ExcelWriter, rows: list[list[Any]], sheet_name: str) -> Worksheet:
    # Blank cells are left unwritten rather than stored as empty strings
    cells = [[None if v == "" else v for v in row] for row in rows]
    pd.DataFrame(cells).to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    return writer.sheets[sheet_name]


def render_template(
    schema: EntitySchema,
    data_rows: int = 10,
    required_marker: str = " *",
) -> bytes:
    """Upload template workbook (``Upload Template`` + ``Instructions``) as xlsx bytes."""
    columns = schema.template_columns
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        ws = _write_sheet(writer, build_template_rows(schema, data_rows, required_marker), TEMPLATE_SHEET)
        _style_metadata_rows(ws, columns)
        info = _write_sheet(writer, _instruction_rows(columns), INSTRUCTIONS_SHEET)
        info.cell(row=1, column=1).font = Font(bold=True, size=14)
        for letter, width in zip("ABCDE", (30, 15, 15, 20, 40), strict=True):
            info.column_dimensions[letter].width = width
    return buf.getvalue()


def simple_sheet_name(name: str) -> str:
    """Excel-safe sheet name: invalid characters become ``_``, max 31 chars."""
    return _INVALID_SHEET_CHARS.sub("_", name)[:_MAX_SHEET_NAME]


def render_simple_template(schema: EntitySchema, blank_rows: int = 50) -> bytes:
    sheet = simple_sheet_name(schema.display_name)
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        ws = _write_sheet(writer, build_simple_template_rows(schema, blank_rows), sheet)
        for c, column in enumerate(schema.columns, start=1):
            cell = ws.cell(row=1, column=c)
            cell.font = Font(bold=True, color="FFFFFF")
            cell.fill = PatternFill(fill_type="solid", fgColor="4472C4")
            cell.alignment = Alignment(horizontal="center", vertical="center")
            ws.column_dimensions[get_column_letter(c)].width = max(len(column.label) + 3, 12)
    return buf.getvalue()


def render_sample_template(
    schema: EntitySchema,
    sample_rows: int = 5,
    required_marker: str = " *",
    day: date | None = None,
) -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        rows = build_sample_template_rows(schema, sample_rows, required_marker, day)
        ws = _write_sheet(writer, rows, SAMPLE_SHEET)
        _style_metadata_rows(ws, schema.template_columns)
    return buf.getvalue()


def file_stem(display_name: str) -> str:
    """Entity display name as a file name prefix, whitespace runs collapsed to '_'."""
    return re.sub(r"\s+", "_", display_name.strip())


def template_filename(display_name: str, kind: str = "template", day: date | None = None) -> str:
    """File name for a generated workbook.

    >>> template_filename("Service Profile", "template", date(2026, 10, 19))
    'Service_Profile_BulkUpload_Template_2026-10-19.xlsx'
    """
    if kind not in _FILENAME_KINDS:
        raise ValueError(f"unknown template kind: {kind!r}")
    day = day or datetime.now(UTC).date()
    return f"{file_stem(display_name)}_{_FILENAME_KINDS[kind]}_{day.isoformat()}.xlsx"
