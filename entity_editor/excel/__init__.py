"""Spreadsheet codecs: upload templates, upload parsing, error reports."""

from .error_report import ERROR_REPORT_COLUMNS, ERROR_REPORT_SHEET, build_error_report_frame, render_error_report
from .reader import TemplateFormatError, parse_import_sheet, read_upload
from .template import (
    build_sample_template_rows,
    build_simple_template_rows,
    build_template_rows,
    file_stem,
    render_sample_template,
    render_simple_template,
    render_template,
    template_filename,
)

__all__ = [
    "ERROR_REPORT_COLUMNS",
    "ERROR_REPORT_SHEET",
    "TemplateFormatError",
    "build_error_report_frame",
    "build_sample_template_rows",
    "build_simple_template_rows",
    "build_template_rows",
    "file_stem",
    "parse_import_sheet",
    "read_upload",
    "render_error_report",
    "render_sample_template",
    "render_simple_template",
    "render_template",
    "template_filename",
]
