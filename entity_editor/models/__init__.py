"""Domain models for the metadata-driven entity editor.

This package contains the data-only classes used throughout the application:
schema description, row snapshots, ledger entries, validation results,
commit outcomes and bulk import rows.
"""

from .commit import BatchCommitResult, CommitOutcome, CommitState, ConflictRecord, Resolution
from .config_models import DatabaseConfig, EditorConfig, EditReasonConfig, ImportSettings, TemplateConfig
from .import_rows import (
    ImportCommitResult,
    ImportValidationOutcome,
    InsertRowResult,
    ParsedImportRow,
    ParsedSheet,
)
from .ledger_entry import EditStatus, LedgerEntry
from .row import FieldValue, Row
from .schema import ColumnDescriptor, DataType, EntityPermissions, EntitySchema, RegionContext
from .validation import FieldError, ValidationResult

__all__ = [
    # Schema
    "ColumnDescriptor",
    "DataType",
    "EntityPermissions",
    "EntitySchema",
    "RegionContext",
    # Rows and edits
    "FieldValue",
    "Row",
    "EditStatus",
    "LedgerEntry",
    # Validation
    "FieldError",
    "ValidationResult",
    # Commit protocol
    "BatchCommitResult",
    "CommitOutcome",
    "CommitState",
    "ConflictRecord",
    "Resolution",
    # Bulk import
    "ImportCommitResult",
    "ImportValidationOutcome",
    "InsertRowResult",
    "ParsedImportRow",
    "ParsedSheet",
    # Configuration
    "DatabaseConfig",
    "EditorConfig",
    "EditReasonConfig",
    "ImportSettings",
    "TemplateConfig",
]
