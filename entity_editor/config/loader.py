from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..models.config_models import (
    DatabaseConfig,
    EditorConfig,
    EditReasonConfig,
    ImportSettings,
    TemplateConfig,
)

"""Config loader.

Responsibilities:
- Load YAML config/editor.yml
- Validate it against contracts/config_schema.json (unknown keys rejected)
- Apply defaults for the optional sections
- Resolve ``schema_file`` relative to the config file's directory
"""

__all__ = [
    "SCHEMA_PATH",
    "ConfigError",
    "load_config",
]

# entity_editor/config/loader.py -> entity_editor/contracts/config_schema.json
SCHEMA_PATH = Path(__file__).parent.parent / "contracts" / "config_schema.json"


class ConfigError(Exception):
    pass


def _validate_config_schema(data: dict[str, Any]) -> None:
    """Validate config data against JSON schema.

    Args:
        data: Configuration data to validate

    Raises:
        ConfigError: If the schema file is missing or not valid JSON, or the
            config data fails schema validation (missing required keys, wrong
            types, unknown keys).
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")

    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _resolve_schema_file(config_path: Path, schema_file: str) -> str:
    candidate = Path(schema_file)
    if candidate.is_absolute():
        return str(candidate)
    return str(config_path.parent / candidate)


def load_config(path: Path) -> EditorConfig:
    if not path.exists():
        raise ConfigError(f"config file not found: {path}")
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"invalid yaml: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError("config validation failed: top-level document must be a mapping")

    _validate_config_schema(data)

    tpl_raw = data.get("template", {})
    imp_raw = data.get("import", {})
    reason_raw = data.get("edit_reason", {})
    db_raw = data.get("database", {})

    template = TemplateConfig(
        data_rows=tpl_raw.get("data_rows", TemplateConfig.data_rows),
        simple_rows=tpl_raw.get("simple_rows", TemplateConfig.simple_rows),
        sample_rows=tpl_raw.get("sample_rows", TemplateConfig.sample_rows),
        required_marker=tpl_raw.get("required_marker", TemplateConfig.required_marker),
    )
    defaults = ImportSettings()
    imports = ImportSettings(
        date_format=imp_raw.get("date_format", defaults.date_format),
        keep_na_strings=tuple(imp_raw.get("keep_na_strings", defaults.keep_na_strings)),
        error_report_dir=imp_raw.get("error_report_dir", defaults.error_report_dir),
    )
    edit_reason = EditReasonConfig(
        min_length=reason_raw.get("min_length", EditReasonConfig.min_length),
        max_length=reason_raw.get("max_length", EditReasonConfig.max_length),
    )
    if edit_reason.min_length > edit_reason.max_length:
        raise ConfigError(
            "config validation failed: edit_reason.min_length exceeds edit_reason.max_length"
        )
    db = DatabaseConfig(
        host=db_raw.get("host"),
        port=db_raw.get("port"),
        user=db_raw.get("user"),
        password=db_raw.get("password"),
        database=db_raw.get("database"),
        dsn=db_raw.get("dsn"),
        tables=dict(db_raw.get("tables", {})),
    )
    return EditorConfig(
        schema_file=_resolve_schema_file(path, data["schema_file"]),
        country=data["region"]["country"],
        business_unit=data["region"]["business_unit"],
        template=template,
        imports=imports,
        edit_reason=edit_reason,
        database=db,
    )
