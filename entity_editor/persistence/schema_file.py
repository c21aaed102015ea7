from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..config.loader import ConfigError
from ..errors import SchemaNotFoundError
from ..models.schema import EntitySchema, RegionContext

"""Schema provider backed by a YAML file.

Layout (validated against contracts/entity_schema.json)::

    entities:
      SERVICE_PROFILE:
        entityName: Service Profile
        regions:            # optional; omitted means every region
          - {country: US, business_unit: Retail}
        permissions: {canView: true, canEdit: true, canAdd: true}
        columns:
          - {name: service_name, label: Service Name, dataType: STRING, required: true}
"""

__all__ = [
    "ENTITY_SCHEMA_PATH",
    "YamlSchemaProvider",
]

ENTITY_SCHEMA_PATH = Path(__file__).parent.parent / "contracts" / "entity_schema.json"


class YamlSchemaProvider:
    """Loads and validates the schema file once; serves schemas per region."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        raw = self._load(self.path)
        self._schemas: dict[str, EntitySchema] = {}
        self._regions: dict[str, set[RegionContext] | None] = {}
        for entity_id, body in raw["entities"].items():
            self._schemas[entity_id] = EntitySchema.from_dict({**body, "entity_id": entity_id})
            regions = body.get("regions")
            self._regions[entity_id] = (
                {RegionContext(r["country"], r["business_unit"]) for r in regions} if regions else None
            )

    @staticmethod
    def _load(path: Path) -> dict[str, Any]:
        if not path.exists():
            raise ConfigError(f"schema file not found: {path}")
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"invalid yaml in schema file: {e}") from e
        contract = json.loads(ENTITY_SCHEMA_PATH.read_text(encoding="utf-8"))
        try:
            jsonschema.validate(data, contract)
        except ValidationError as e:
            raise ConfigError(f"schema file validation failed: {e.message}") from e
        return data

    def entity_ids(self) -> list[str]:
        return list(self._schemas)

    def schemas(self) -> list[EntitySchema]:
        return list(self._schemas.values())

    def regions_for(self, entity_id: str) -> list[RegionContext] | None:
        regions = self._regions.get(entity_id)
        return sorted(regions, key=lambda r: (r.country, r.business_unit)) if regions else None

    def fetch_schema(self, entity_id: str, region: RegionContext) -> EntitySchema:
        schema = self._schemas.get(entity_id)
        if schema is None:
            raise SchemaNotFoundError(f"Entity metadata not found for {entity_id}")
        regions = self._regions[entity_id]
        if regions is not None and region not in regions:
            raise SchemaNotFoundError(
                f"Entity {entity_id} is not available for {region.country}/{region.business_unit}"
            )
        return schema
