"""Editor services: commit protocol, bulk import pipeline, progress and summary."""

from .import_pipeline import BulkImportService, validate_import_rows
from .occ import CommitProtocol
from .progress import ProgressTracker, is_tty_enabled
from .summary import render_summary_line

__all__ = [
    "BulkImportService",
    "CommitProtocol",
    "ProgressTracker",
    "is_tty_enabled",
    "render_summary_line",
    "validate_import_rows",
]
