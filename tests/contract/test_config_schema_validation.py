from __future__ import annotations

import json

import jsonschema
import pytest

from entity_editor.config.loader import SCHEMA_PATH

"""Config JSON schema contract (config/editor.yml)."""

MINIMAL = {"schema_file": "schemas.yml", "region": {"country": "US", "business_unit": "Retail"}}


@pytest.fixture()
def schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


def test_minimal_config_valid(schema):
    jsonschema.validate(MINIMAL, schema)


def test_full_config_valid(schema):
    config = {
        **MINIMAL,
        "template": {"data_rows": 10, "simple_rows": 50, "sample_rows": 5, "required_marker": " *"},
        "import": {"date_format": "%Y-%m-%d", "keep_na_strings": ["NA"], "error_report_dir": "./reports"},
        "edit_reason": {"min_length": 10, "max_length": 500},
        "database": {"host": "localhost", "port": 5432, "dsn": None, "tables": {"SERVICE_PROFILE": "service_profile"}},
    }
    jsonschema.validate(config, schema)


@pytest.mark.parametrize(
    "bad",
    [
        {"schema_file": "schemas.yml"},
        {**MINIMAL, "region": {"country": "US"}},
        {**MINIMAL, "template": {"data_rows": 0}},
        {**MINIMAL, "import": {"keep_na_strings": "NA"}},
        {**MINIMAL, "database": {"tables": {"SERVICE_PROFILE": "bad-name"}}},
        {**MINIMAL, "unexpected": True},
    ],
)
def test_invalid_configs_rejected(schema, bad):
    with pytest.raises(jsonschema.exceptions.ValidationError):
        jsonschema.validate(bad, schema)
