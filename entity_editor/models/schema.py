from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Schema model for metadata-driven entities.

An entity's column layout is supplied at runtime by a schema provider. The
classes here are pure data: they describe columns and permissions and carry
no validation behaviour (see ``entity_editor.validation.engine``).

Provider payloads use the camelCase keys of the metadata API
(``dataType``, ``enumValues``, ``canEdit`` ...); ``from_dict`` accepts those
as well as the snake_case attribute names.
"""

__all__ = [
    "DataType",
    "ColumnDescriptor",
    "EntityPermissions",
    "EntitySchema",
    "RegionContext",
]


class DataType(Enum):
    """Declared data type of a column.

    Values are the wire names used by the metadata API and written into row 2
    of the import template.
    """
    TEXT = "STRING"
    NUMBER = "NUMBER"
    FLAG = "BOOLEAN"
    DATE = "DATE"
    ENUMERATED = "ENUM"

    @classmethod
    def parse(cls, raw: str | DataType) -> DataType:
        if isinstance(raw, DataType):
            return raw
        key = str(raw).strip().upper()
        for member in cls:
            if key in (member.name, member.value):
                return member
        raise ValueError(f"unknown data type: {raw!r}")


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return default


@dataclass(frozen=True)
class ColumnDescriptor:
    """One column of an entity schema. Immutable once loaded."""
    name: str  # Stable key used in row field maps
    label: str  # Display text, also the header text of import templates
    data_type: DataType
    editable: bool = False
    required: bool = False
    max_length: int | None = None  # TEXT only
    permitted_values: tuple[str, ...] | None = None  # ENUMERATED only
    default_value: Any = None
    filterable: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ColumnDescriptor:
        permitted = _pick(data, "permitted_values", "enumValues", "enum_values")
        return cls(
            name=str(data["name"]),
            label=str(_pick(data, "label", default=data["name"])),
            data_type=DataType.parse(_pick(data, "data_type", "dataType", default="STRING")),
            editable=bool(_pick(data, "editable", default=False)),
            required=bool(_pick(data, "required", default=False)),
            max_length=_pick(data, "max_length", "maxLength"),
            permitted_values=tuple(str(v) for v in permitted) if permitted is not None else None,
            default_value=_pick(data, "default_value", "defaultValue"),
            filterable=bool(_pick(data, "filterable", "isFilterable", default=False)),
        )


@dataclass(frozen=True)
class EntityPermissions:
    can_view: bool = True
    can_edit: bool = False
    can_download: bool = False
    can_delete: bool = False
    can_add: bool = False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any] | None) -> EntityPermissions:
        data = data or {}
        return cls(
            can_view=bool(_pick(data, "can_view", "canView", default=True)),
            can_edit=bool(_pick(data, "can_edit", "canEdit", default=False)),
            can_download=bool(_pick(data, "can_download", "canDownload", default=False)),
            can_delete=bool(_pick(data, "can_delete", "canDelete", default=False)),
            can_add=bool(_pick(data, "can_add", "canAdd", default=False)),
        )


@dataclass(frozen=True)
class RegionContext:
    """Region selection a schema is loaded for (country + business unit)."""
    country: str
    business_unit: str


@dataclass(frozen=True)
class EntitySchema:
    """Declarative description of an entity's columns and permissions.

    Loaded once per (entity, region) selection and read-only thereafter.
    Column order is significant: templates and reports follow it.
    """
    entity_id: str
    display_name: str
    columns: tuple[ColumnDescriptor, ...]
    permissions: EntityPermissions = field(default_factory=EntityPermissions)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> EntitySchema:
        entity_id = str(_pick(data, "entity_id", "entityId"))
        return cls(
            entity_id=entity_id,
            display_name=str(_pick(data, "display_name", "entityName", "entity_name", default=entity_id)),
            columns=tuple(ColumnDescriptor.from_dict(c) for c in data.get("columns", [])),
            permissions=EntityPermissions.from_dict(data.get("permissions")),
        )

    def column(self, name: str) -> ColumnDescriptor | None:
        for col in self.columns:
            if col.name == name:
                return col
        return None

    def column_by_label(self, label: str) -> ColumnDescriptor | None:
        for col in self.columns:
            if col.label == label:
                return col
        return None

    @property
    def required_columns(self) -> tuple[ColumnDescriptor, ...]:
        return tuple(c for c in self.columns if c.required)

    @property
    def template_columns(self) -> tuple[ColumnDescriptor, ...]:
        """Columns an operator fills in when adding rows: editable or required."""
        return tuple(c for c in self.columns if c.editable or c.required)
