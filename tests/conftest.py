# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from entity_editor.logging.init import reset_logging
from entity_editor.models.row import Row
from entity_editor.models.schema import EntitySchema
from entity_editor.persistence.memory import InMemoryEntityStore

SERVICE_PROFILE: dict[str, Any] = {
    "entity_id": "SERVICE_PROFILE",
    "entityName": "Service Profile",
    "permissions": {"canView": True, "canEdit": True, "canDownload": True, "canAdd": True},
    "columns": [
        {"name": "id", "label": "ID", "dataType": "STRING", "editable": False},
        {"name": "service_name", "label": "Service Name", "dataType": "STRING",
         "editable": True, "required": True, "maxLength": 100},
        {"name": "status", "label": "Status", "dataType": "ENUM", "editable": True,
         "required": True, "enumValues": ["Active", "Inactive", "Pending"]},
        {"name": "priority", "label": "Priority", "dataType": "NUMBER", "editable": True},
        {"name": "is_public", "label": "Public", "dataType": "BOOLEAN", "editable": True},
        {"name": "start_date", "label": "Start Date", "dataType": "DATE", "editable": True},
        {"name": "description", "label": "Description", "dataType": "STRING",
         "editable": True, "maxLength": 500},
    ],
}

REASON = "Quarterly service catalogue update"


@pytest.fixture()
def reason() -> str:
    return REASON


@pytest.fixture(autouse=True)
def _fresh_logging():
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def schema() -> EntitySchema:
    return EntitySchema.from_dict(SERVICE_PROFILE)


@pytest.fixture()
def seeded_rows() -> list[Row]:
    return [
        Row("r1", 1, {"id": "r1", "service_name": "Alpha", "status": "Active", "priority": 1}),
        Row("r2", 3, {"id": "r2", "service_name": "Beta", "status": "Pending", "priority": 2}),
        Row("r3", 1, {"id": "r3", "service_name": "Gamma", "status": "Inactive", "priority": 3}),
    ]


@pytest.fixture()
def store(schema: EntitySchema, seeded_rows: list[Row]) -> InMemoryEntityStore:
    s = InMemoryEntityStore([schema])
    s.seed_rows(schema.entity_id, seeded_rows)
    return s


@pytest.fixture()
def sample_config_yaml() -> str:
    return """schema_file: schemas.yml
region:
  country: US
  business_unit: Retail
template:
  data_rows: 10
import:
  date_format: "%Y-%m-%d"
  keep_na_strings: ["NA"]
  error_report_dir: ./reports
edit_reason:
  min_length: 10
  max_length: 500
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def sample_schemas_yaml() -> str:
    return """entities:
  SERVICE_PROFILE:
    entityName: Service Profile
    regions:
      - {country: US, business_unit: Retail}
    permissions: {canView: true, canEdit: true, canAdd: true}
    columns:
      - {name: id, label: ID, dataType: STRING, editable: false}
      - {name: service_name, label: Service Name, dataType: STRING, editable: true, required: true, maxLength: 100}
      - {name: status, label: Status, dataType: ENUM, editable: true, required: true, enumValues: [Active, Inactive, Pending]}
      - {name: priority, label: Priority, dataType: NUMBER, editable: true}
      - {name: is_public, label: Public, dataType: BOOLEAN, editable: true}
      - {name: start_date, label: Start Date, dataType: DATE, editable: true}
      - {name: description, label: Description, dataType: STRING, editable: true, maxLength: 500}
  READ_ONLY_CODES:
    entityName: Read Only Codes
    permissions: {canView: true}
    columns:
      - {name: code, label: Code, dataType: STRING, required: true}
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str, sample_schemas_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "editor.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    (temp_workdir / "config" / "schemas.yml").write_text(sample_schemas_yaml, encoding="utf-8")
    return cfg


TEMPLATE_HEADER = [
    ["Service Name *", "Status *", "Priority", "Public", "Start Date", "Description"],
    ["[STRING]", "[ENUM]", "[NUMBER]", "[BOOLEAN]", "[DATE]", "[STRING]"],
    ["Required | Max 100 chars", "Required | Options: Active, Inactive, Pending",
     "Any value", "Any value", "Any value", "Max 500 chars"],
]


@pytest.fixture()
def make_upload(tmp_path: Path) -> Callable[..., Path]:
    """Write an .xlsx upload: the three template rows (or a custom header) plus data rows."""

    def _make(data_rows: list[list[Any]], header: list[list[Any]] | None = None, name: str = "upload.xlsx") -> Path:
        rows = [list(r) for r in (header if header is not None else TEMPLATE_HEADER)] + [list(r) for r in data_rows]
        path = tmp_path / name
        pd.DataFrame(rows).to_excel(path, sheet_name="Upload Template", header=False, index=False)
        return path

    return _make


@pytest.fixture()
def ten_row_upload() -> list[list[Any]]:
    """Ten data rows: the 7th is blank and the 3rd carries an invalid status."""
    rows: list[list[Any]] = []
    for i in range(1, 11):
        if i == 7:
            rows.append([None] * 6)
            continue
        status = "Bogus" if i == 3 else "Active"
        rows.append([f"Service {i}", status, i * 10, "YES" if i % 2 else "NO", "2026-10-19", f"Row {i}"])
    return rows
