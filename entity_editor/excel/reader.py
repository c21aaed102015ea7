from __future__ import annotations

import io
import re
import zipfile
from pathlib import Path
from typing import IO, Any

import pandas as pd
import pandas._libs.parsers as parsers

from ..models.import_rows import ParsedImportRow, ParsedSheet
from ..validation.engine import is_empty

"""Upload parser.

Template layout:

- row 1: column labels, required columns suffixed with the marker (" *")
- row 2: data type tags (ignored on read)
- row 3: hints (ignored on read)
- row 4+: data; rows where every cell is empty are skipped

Row numbers reported back to operators are 1-based sheet row numbers, so the
first data row is row 4.
"""

__all__ = [
    "HEADER_ROWS",
    "TemplateFormatError",
    "read_upload",
    "parse_import_sheet",
]

HEADER_ROWS = 3


class TemplateFormatError(Exception):
    """Raised when an upload cannot be read or lacks the template layout."""


def read_upload(
    source: Path | str | bytes | IO[bytes],
    keep_na_strings: list[str] | tuple[str, ...] | None = None,
) -> tuple[str, pd.DataFrame]:
    """Read the first sheet of an uploaded workbook without a header row.

    Args:
        source: Path, raw bytes or binary file object of an .xlsx workbook
        keep_na_strings: Strings pandas would turn into NaN by default but
            that must be kept as text (for example ``NA`` as a country code)

    Returns:
        (sheet_name, raw DataFrame)

    Raises:
        TemplateFormatError: If the workbook cannot be opened or has no sheet.
    """
    if keep_na_strings:
        na_values: list[str] | None = list(parsers.STR_NA_VALUES - set(keep_na_strings))
        keep_default_na = False
    else:
        na_values = None
        keep_default_na = True

    if isinstance(source, bytes):
        source = io.BytesIO(source)
    try:
        with pd.ExcelFile(source, engine="openpyxl") as xls:
            if not xls.sheet_names:
                raise TemplateFormatError("Workbook contains no sheets")
            name = str(xls.sheet_names[0])
            df = xls.parse(
                xls.sheet_names[0],
                header=None,
                keep_default_na=keep_default_na,
                na_values=na_values,
            )
    except FileNotFoundError as e:
        raise TemplateFormatError(f"File not found: {source}") from e
    except (ValueError, KeyError, OSError, zipfile.BadZipFile) as e:
        raise TemplateFormatError(f"Failed to parse Excel file: {e}") from e
    return name, df


def _marker_pattern(required_marker: str) -> re.Pattern[str]:
    return re.compile(rf"\s*{re.escape(required_marker.strip())}\s*$")


def parse_import_sheet(
    df: pd.DataFrame,
    sheet_name: str = "",
    required_marker: str = " *",
) -> ParsedSheet:
    """Turn a raw template sheet into parsed data rows.

    Columns whose row-1 label is empty are ignored. Cell values are returned
    as read; typing happens in the row validator.

    Raises:
        TemplateFormatError: If the sheet has fewer than four rows.
    """
    if df.shape[0] < HEADER_ROWS + 1:
        raise TemplateFormatError(
            "Invalid template format. Expected at least 4 rows "
            "(headers, types, hints, and at least one data row)."
        )

    marker = _marker_pattern(required_marker)
    labels: list[str] = []
    positions: list[int] = []
    for pos, cell in enumerate(df.iloc[0].tolist()):
        if is_empty(cell):
            continue
        label = marker.sub("", str(cell)).strip()
        if not label:
            continue
        labels.append(label)
        positions.append(pos)

    rows: list[ParsedImportRow] = []
    for index in range(HEADER_ROWS, df.shape[0]):
        raw = df.iloc[index].tolist()
        if all(_blank(v) for v in raw):
            continue
        values: dict[str, Any] = {}
        for label, pos in zip(labels, positions, strict=True):
            cell = raw[pos] if pos < len(raw) else None
            values[label] = None if is_empty(cell) else cell
        rows.append(ParsedImportRow(row_number=index + 1, values=values, raw_values=raw))

    return ParsedSheet(sheet_name=sheet_name, labels=labels, rows=rows, total_rows=int(df.shape[0]))


def _blank(value: Any) -> bool:
    return is_empty(value) or (isinstance(value, str) and value.strip() == "")
