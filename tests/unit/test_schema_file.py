from __future__ import annotations

from pathlib import Path

import pytest

from entity_editor.config.loader import ConfigError
from entity_editor.errors import SchemaNotFoundError
from entity_editor.models.schema import DataType, RegionContext
from entity_editor.persistence.schema_file import YamlSchemaProvider

US = RegionContext("US", "Retail")


@pytest.fixture()
def schemas_path(write_config: Path) -> Path:
    return write_config.parent / "schemas.yml"


def test_loads_every_entity(schemas_path: Path):
    provider = YamlSchemaProvider(schemas_path)
    assert provider.entity_ids() == ["SERVICE_PROFILE", "READ_ONLY_CODES"]
    schema = provider.fetch_schema("SERVICE_PROFILE", US)
    assert schema.display_name == "Service Profile"
    assert schema.column("status").data_type is DataType.ENUMERATED
    assert schema.column("status").permitted_values == ("Active", "Inactive", "Pending")
    assert schema.permissions.can_add


def test_region_restriction(schemas_path: Path):
    provider = YamlSchemaProvider(schemas_path)
    assert provider.regions_for("SERVICE_PROFILE") == [US]
    with pytest.raises(SchemaNotFoundError, match="not available for UK/Retail"):
        provider.fetch_schema("SERVICE_PROFILE", RegionContext("UK", "Retail"))


def test_entity_without_regions_serves_every_region(schemas_path: Path):
    provider = YamlSchemaProvider(schemas_path)
    assert provider.regions_for("READ_ONLY_CODES") is None
    schema = provider.fetch_schema("READ_ONLY_CODES", RegionContext("DE", "Wholesale"))
    assert not schema.permissions.can_edit
    assert not schema.permissions.can_add


def test_unknown_entity(schemas_path: Path):
    with pytest.raises(SchemaNotFoundError, match="Entity metadata not found for NOPE"):
        YamlSchemaProvider(schemas_path).fetch_schema("NOPE", US)


def test_missing_file(tmp_path: Path):
    with pytest.raises(ConfigError, match="schema file not found"):
        YamlSchemaProvider(tmp_path / "absent.yml")


def test_invalid_data_type_rejected(tmp_path: Path):
    path = tmp_path / "schemas.yml"
    path.write_text(
        "entities:\n  X:\n    entityName: X\n    columns:\n      - {name: a, label: A, dataType: BLOB}\n",
        encoding="utf-8",
    )
    with pytest.raises(ConfigError, match="schema file validation failed"):
        YamlSchemaProvider(path)
