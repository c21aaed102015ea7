from __future__ import annotations

import math
import numbers
import re
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

import pandas as pd

from ..errors import EditReasonError
from ..models.row import FieldValue
from ..models.schema import ColumnDescriptor, DataType, EntitySchema
from ..models.validation import FieldError, ValidationResult

"""Schema-driven validation engine.

Two rule sets share this module:

- Inline edit rules (``validate_field`` / ``validate_record``) check values an
  operator typed against a column. Messages name the column label.
- Import rules (``coerce_import_value``) decode spreadsheet cells into typed
  values per declared data type and report label-keyed errors.

Everything here is a pure function of its inputs; nothing talks to
persistence.
"""

__all__ = [
    "is_empty",
    "validate_field",
    "validate_record",
    "coerce_import_value",
    "validate_edit_reason",
    "FLAG_TRUE",
    "FLAG_FALSE",
]

FLAG_TRUE = frozenset({"TRUE", "YES", "1"})
FLAG_FALSE = frozenset({"FALSE", "NO", "0"})

ISO_DATE_FORMAT = "%Y-%m-%d"

# Plain decimal or exponent notation only; no digit separators or hex.
_NUMBER_TEXT = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?$")

# Words pandas resolves against the clock rather than parsing.
_RELATIVE_DATE_WORDS = frozenset({"today", "now"})


def is_empty(value: Any) -> bool:
    """True for undefined, null, NaN/NaT and the empty string."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    try:
        return bool(pd.api.types.is_scalar(value) and pd.isna(value))
    except (TypeError, ValueError):
        return False


def _to_number(value: Any) -> int | float | None:
    """Coerce to a finite number, or None when not possible."""
    if isinstance(value, bool):
        return None
    if isinstance(value, numbers.Integral):
        return int(value)
    if isinstance(value, numbers.Number):
        num = float(value)  # type: ignore[arg-type]
    else:
        text = str(value).strip()
        if not _NUMBER_TEXT.match(text):
            return None
        try:
            num = float(text)
        except ValueError:
            return None
    if not math.isfinite(num):
        return None
    if num.is_integer() and abs(num) < 2**53:
        return int(num)
    return num


def _cell_text(value: Any) -> str:
    """Render a spreadsheet cell as the text an operator typed."""
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value).strip()


def _to_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool):
        return None
    text = _cell_text(value)
    if text.lower() in _RELATIVE_DATE_WORDS:
        return None
    try:
        ts = pd.to_datetime(text)
    except (ValueError, TypeError, OverflowError):
        return None
    if pd.isna(ts):
        return None
    return ts.date()


# ---------------------------------------------------------------------------
# Inline edit rules
# ---------------------------------------------------------------------------

def validate_field(column: ColumnDescriptor, value: Any) -> FieldError | None:
    """Validate one value against its column.

    Required check first; an empty optional value passes without further
    checks. FLAG and DATE have no structural check at edit time.
    """
    if is_empty(value):
        if column.required:
            return FieldError(column.name, f"{column.label} is required", "required")
        return None

    if column.data_type is DataType.TEXT:
        if column.max_length and len(str(value)) > column.max_length:
            return FieldError(
                column.name,
                f"{column.label} must be at most {column.max_length} characters",
                "max_length",
            )
    elif column.data_type is DataType.NUMBER:
        if _to_number(value) is None:
            return FieldError(column.name, f"{column.label} must be a valid number", "invalid_number")
    elif column.data_type is DataType.ENUMERATED:
        if column.permitted_values is not None and str(value) not in column.permitted_values:
            return FieldError(
                column.name,
                f"{column.label} must be one of: {', '.join(column.permitted_values)}",
                "invalid_choice",
            )
    return None


def validate_record(
    schema: EntitySchema,
    base_record: Mapping[str, Any],
    patch: Mapping[str, Any],
) -> ValidationResult:
    """Validate a patch merged over a base record.

    Every changed key known to the schema is checked, then every required
    column of the merged view is checked even if the patch did not touch it.
    All errors are collected; a column is reported at most once.
    """
    merged = {**base_record, **patch}
    errors: list[FieldError] = []
    reported: set[str] = set()

    for name, value in patch.items():
        column = schema.column(name)
        if column is None:
            continue
        err = validate_field(column, value)
        if err is not None:
            errors.append(err)
            reported.add(name)

    for column in schema.required_columns:
        if column.name in reported:
            continue
        if is_empty(merged.get(column.name)):
            errors.append(FieldError(column.name, f"{column.label} is required", "required"))
            reported.add(column.name)

    return ValidationResult.from_errors(errors)


# ---------------------------------------------------------------------------
# Import rules
# ---------------------------------------------------------------------------

def coerce_import_value(
    column: ColumnDescriptor,
    value: Any,
    date_format: str = ISO_DATE_FORMAT,
) -> tuple[FieldValue, FieldError | None]:
    """Decode a spreadsheet cell into the column's typed value.

    Returns ``(typed_value, error)``. On error the typed value is the best
    effort text of the cell so the error report can still show it.
    """
    if isinstance(value, str):
        value = value.strip()
    if is_empty(value):
        if column.required:
            return None, FieldError(column.label, "This field is required", "required")
        if column.data_type in (DataType.TEXT, DataType.ENUMERATED):
            return "", None
        return None, None

    dt = column.data_type
    if dt is DataType.TEXT:
        text = _cell_text(value)
        if column.max_length and len(text) > column.max_length:
            return text, FieldError(
                column.label, f"Maximum length is {column.max_length} characters", "max_length"
            )
        return text, None

    if dt is DataType.NUMBER:
        num = _to_number(value)
        if num is None:
            return _cell_text(value), FieldError(column.label, "Must be a valid number", "invalid_number")
        return num, None

    if dt is DataType.FLAG:
        token = _cell_text(value).upper()
        if token in FLAG_TRUE:
            return True, None
        if token in FLAG_FALSE:
            return False, None
        return _cell_text(value), FieldError(
            column.label, "Must be TRUE/FALSE, YES/NO, or 1/0", "invalid_flag"
        )

    if dt is DataType.ENUMERATED:
        text = _cell_text(value)
        if column.permitted_values is not None and text not in column.permitted_values:
            return text, FieldError(
                column.label, f"Must be one of: {', '.join(column.permitted_values)}", "invalid_choice"
            )
        return text, None

    if dt is DataType.DATE:
        parsed = _to_date(value)
        if parsed is None:
            return _cell_text(value), FieldError(
                column.label, "Must be a valid date (YYYY-MM-DD)", "invalid_date"
            )
        return parsed.strftime(date_format), None

    return _cell_text(value), None


def validate_edit_reason(reason: str | None, min_length: int = 10, max_length: int = 500) -> str:
    """Check the audit reason attached to every change and return it stripped.

    Raises:
        EditReasonError: If the reason is shorter than ``min_length`` after
            stripping or longer than ``max_length``.
    """
    text = (reason or "").strip()
    if len(text) < min_length:
        raise EditReasonError(f"Reason must be at least {min_length} characters")
    if len(text) > max_length:
        raise EditReasonError(f"Reason must not exceed {max_length} characters")
    return text
