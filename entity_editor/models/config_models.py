from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the entity editor.

Built by ``entity_editor.config.loader.load_config`` from ``config/editor.yml``
after JSON schema validation; defaults here mirror the schema defaults.
"""

__all__ = [
    "DatabaseConfig",
    "TemplateConfig",
    "ImportSettings",
    "EditReasonConfig",
    "EditorConfig",
]


@dataclass(frozen=True)
class DatabaseConfig:
    """Database connection configuration.

    Used as fallback when environment variables are not set.
    Environment variables take precedence over these values.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None
    tables: dict[str, str] = field(default_factory=dict)  # Entity id -> table name


@dataclass(frozen=True)
class TemplateConfig:
    data_rows: int = 10  # Blank data rows after the three metadata rows
    simple_rows: int = 50  # Blank rows of the simple (reference) template
    sample_rows: int = 5
    required_marker: str = " *"


@dataclass(frozen=True)
class ImportSettings:
    date_format: str = "%Y-%m-%d"
    # Strings pandas would turn into NaN but that are real values here
    keep_na_strings: tuple[str, ...] = ("NA", "N/A", "NULL", "None")
    error_report_dir: str = "./reports"


@dataclass(frozen=True)
class EditReasonConfig:
    min_length: int = 10
    max_length: int = 500


@dataclass(frozen=True)
class EditorConfig:
    """Root configuration object."""
    schema_file: str  # YAML file the schema provider reads
    country: str
    business_unit: str
    template: TemplateConfig = field(default_factory=TemplateConfig)
    imports: ImportSettings = field(default_factory=ImportSettings)
    edit_reason: EditReasonConfig = field(default_factory=EditReasonConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
