"""
Partial-update records for tables, columns, relationships and enum types.

A patch distinguishes a field that was omitted (keep the stored value) from
one explicitly set to None (clear an optional value). Pydantic tracks the
set of fields the caller supplied in ``model_fields_set``; only those are
written.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, model_validator

from .types import RelationType, TypeCategory


class PartialUpdate(BaseModel):
    """Base for per-entity partial updates."""

    model_config = ConfigDict(extra="forbid")

    # Fields that may be omitted but never set to None.
    required_when_set: ClassVar[frozenset[str]] = frozenset()

    @model_validator(mode="after")
    def reject_null_required(self) -> PartialUpdate:
        for name in self.model_fields_set & self.required_when_set:
            if getattr(self, name) is None:
                raise ValueError(f"'{name}' cannot be null")
        return self

    def is_empty(self) -> bool:
        return not self.model_fields_set

    def changes(self) -> dict[str, Any]:
        """Supplied fields in store representation (enums by value)."""
        result: dict[str, Any] = {}
        for name in sorted(self.model_fields_set):
            value = getattr(self, name)
            if isinstance(value, Enum):
                value = value.value
            result[name] = value
        return result


class TableUpdate(PartialUpdate):
    name: str | None = None
    position_x: float | None = None
    position_y: float | None = None

    required_when_set: ClassVar[frozenset[str]] = frozenset({"name", "position_x", "position_y"})


class ColumnUpdate(PartialUpdate):
    name: str | None = None
    data_type: str | None = None
    type_category: TypeCategory | None = None
    is_primary_key: bool | None = None
    is_nullable: bool | None = None
    is_unique: bool | None = None
    order: int | None = None
    default_value: str | None = None
    array_base_type: str | None = None
    enum_type_id: str | None = None

    required_when_set: ClassVar[frozenset[str]] = frozenset(
        {
            "name",
            "data_type",
            "type_category",
            "is_primary_key",
            "is_nullable",
            "is_unique",
            "order",
        }
    )


class RelationshipUpdate(PartialUpdate):
    relation_type: RelationType | None = None
    junction_table_id: str | None = None

    required_when_set: ClassVar[frozenset[str]] = frozenset({"relation_type"})


class EnumTypeUpdate(PartialUpdate):
    name: str | None = None
    values: list[str] | None = None

    required_when_set: ClassVar[frozenset[str]] = frozenset({"name", "values"})
