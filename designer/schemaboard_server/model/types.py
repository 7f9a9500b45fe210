"""
Core type definitions for the SchemaBoard graph.

This module defines the records the engine stores and the closed
variants they use:
- TypeCategory / RelationType: closed tagged variants for columns and edges
- Role / Capability: collaborator roles and the capabilities they resolve to
- Project, Collaborator, Table, Column, Relationship, EnumType,
  Snapshot, UndoEntry: one dataclass per store collection
- TableWithColumns / SchemaGraph: read-side aggregates

Invariants:
    - Identifiers are opaque strings, stable for the entity lifetime
    - Timestamps are Unix milliseconds
    - Records round-trip through to_record()/from_record() unchanged
    - Enum values are stored by their string value, never by name

How to change safely:
    - Add new optional fields with defaults so old records still load
    - Never rename a stored enum value; snapshots depend on it
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar


class TypeCategory(Enum):
    """Category of a column's data type, used for grouping and export."""

    BOOLEAN = "boolean"
    ARRAY = "array"
    NUMERIC = "numeric"
    TEXT = "text"
    DATETIME = "datetime"
    JSON = "json"
    UUID = "uuid"
    ENUM = "enum"
    OTHER = "other"

    @classmethod
    def from_str(cls, value: str) -> TypeCategory:
        """Convert string representation to TypeCategory.

        Raises:
            ValueError: If value is not a valid category
        """
        for category in cls:
            if category.value == value:
                return category
        valid = [c.value for c in cls]
        raise ValueError(f"Invalid type category '{value}'. Valid categories: {valid}")


class RelationType(Enum):
    """Cardinality of a foreign-key relationship."""

    ONE_TO_ONE = "one-to-one"
    ONE_TO_MANY = "one-to-many"
    MANY_TO_MANY = "many-to-many"

    @classmethod
    def from_str(cls, value: str) -> RelationType:
        """Convert string representation to RelationType.

        Raises:
            ValueError: If value is not a valid relation type
        """
        for relation in cls:
            if relation.value == value:
                return relation
        valid = [r.value for r in cls]
        raise ValueError(f"Invalid relation type '{value}'. Valid types: {valid}")

    @property
    def requires_junction(self) -> bool:
        return self is RelationType.MANY_TO_MANY


class Role(Enum):
    """Collaborator role on a project."""

    EDITOR = "editor"
    VIEWER = "viewer"


class Capability(Enum):
    """What an actor may do with a project."""

    READ = "read"
    WRITE = "write"


class UndoStatus(Enum):
    """Where an undo entry sits relative to the stack cursor."""

    APPLIED = "applied"
    UNDONE = "undone"
    DISCARDED = "discarded"


@dataclass
class Project:
    """Root of an ownership scope.

    Attributes:
        id: Project identifier
        name: Display name
        owner_id: User who owns the project
        share_link: Optional read-only share token
        created_at: Creation timestamp (Unix ms)
        updated_at: Last update timestamp (Unix ms)
    """

    collection: ClassVar[str] = "projects"

    id: str
    name: str
    owner_id: str
    created_at: int
    updated_at: int
    share_link: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "owner_id": self.owner_id,
            "share_link": self.share_link,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Project:
        return cls(
            id=record["id"],
            name=record["name"],
            owner_id=record["owner_id"],
            share_link=record.get("share_link"),
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )


@dataclass
class Collaborator:
    """Membership of a non-owner user in a project."""

    collection: ClassVar[str] = "collaborators"

    id: str
    project_id: str
    user_id: str
    role: Role
    invited_at: int
    invited_by: str

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "role": self.role.value,
            "invited_at": self.invited_at,
            "invited_by": self.invited_by,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Collaborator:
        return cls(
            id=record["id"],
            project_id=record["project_id"],
            user_id=record["user_id"],
            role=Role(record["role"]),
            invited_at=record["invited_at"],
            invited_by=record["invited_by"],
        )


@dataclass
class Table:
    """A modeled relational table, positioned on the canvas.

    Attributes:
        id: Table identifier
        project_id: Owning project
        name: Table name (not unique)
        position_x: Canvas X coordinate
        position_y: Canvas Y coordinate
        created_at: Creation timestamp (Unix ms)
        updated_at: Last update timestamp (Unix ms)
    """

    collection: ClassVar[str] = "tables"

    id: str
    project_id: str
    name: str
    position_x: float
    position_y: float
    created_at: int
    updated_at: int

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "position_x": self.position_x,
            "position_y": self.position_y,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Table:
        return cls(
            id=record["id"],
            project_id=record["project_id"],
            name=record["name"],
            position_x=float(record["position_x"]),
            position_y=float(record["position_y"]),
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )


@dataclass
class Column:
    """A field of a Table with type and constraint metadata.

    Attributes:
        id: Column identifier
        table_id: Owning table
        name: Column name
        data_type: Free-text type (e.g. "uuid", "integer[]", "my_enum")
        type_category: Closed category of data_type
        is_primary_key: Part of the primary key
        is_nullable: Accepts NULL
        is_unique: Has a unique constraint
        order: Position within the table (dense after reorder)
        default_value: Default expression
        array_base_type: Element type for array columns
        enum_type_id: Referenced enum type for enum columns
        created_at: Creation timestamp (Unix ms)
        updated_at: Last update timestamp (Unix ms)
    """

    collection: ClassVar[str] = "columns"

    id: str
    table_id: str
    name: str
    data_type: str
    type_category: TypeCategory
    is_primary_key: bool
    is_nullable: bool
    is_unique: bool
    order: int
    created_at: int
    updated_at: int
    default_value: str | None = None
    array_base_type: str | None = None
    enum_type_id: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "table_id": self.table_id,
            "name": self.name,
            "data_type": self.data_type,
            "type_category": self.type_category.value,
            "is_primary_key": self.is_primary_key,
            "is_nullable": self.is_nullable,
            "is_unique": self.is_unique,
            "default_value": self.default_value,
            "array_base_type": self.array_base_type,
            "enum_type_id": self.enum_type_id,
            "order": self.order,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Column:
        return cls(
            id=record["id"],
            table_id=record["table_id"],
            name=record["name"],
            data_type=record["data_type"],
            type_category=TypeCategory(record["type_category"]),
            is_primary_key=bool(record["is_primary_key"]),
            is_nullable=bool(record["is_nullable"]),
            is_unique=bool(record["is_unique"]),
            default_value=record.get("default_value"),
            array_base_type=record.get("array_base_type"),
            enum_type_id=record.get("enum_type_id"),
            order=record["order"],
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )


@dataclass
class Relationship:
    """A foreign-key edge between two columns.

    The source side is the child (holds the foreign key), the target side
    is the parent. Both column references are weak: the mutator prevents
    deleting a referenced column and cascades on table deletion.
    """

    collection: ClassVar[str] = "relationships"

    id: str
    project_id: str
    source_table_id: str
    source_column_id: str
    target_table_id: str
    target_column_id: str
    relation_type: RelationType
    created_at: int
    junction_table_id: str | None = None

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "source_table_id": self.source_table_id,
            "source_column_id": self.source_column_id,
            "target_table_id": self.target_table_id,
            "target_column_id": self.target_column_id,
            "relation_type": self.relation_type.value,
            "junction_table_id": self.junction_table_id,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Relationship:
        return cls(
            id=record["id"],
            project_id=record["project_id"],
            source_table_id=record["source_table_id"],
            source_column_id=record["source_column_id"],
            target_table_id=record["target_table_id"],
            target_column_id=record["target_column_id"],
            relation_type=RelationType(record["relation_type"]),
            junction_table_id=record.get("junction_table_id"),
            created_at=record["created_at"],
        )


@dataclass
class EnumType:
    """A custom enumerated type, unique by name within its project."""

    collection: ClassVar[str] = "enum_types"

    id: str
    project_id: str
    name: str
    values: list[str]
    created_at: int
    updated_at: int

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "name": self.name,
            "values": list(self.values),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> EnumType:
        return cls(
            id=record["id"],
            project_id=record["project_id"],
            name=record["name"],
            values=list(record["values"]),
            created_at=record["created_at"],
            updated_at=record["updated_at"],
        )


@dataclass
class Snapshot:
    """Immutable point-in-time capture of a project's schema graph."""

    collection: ClassVar[str] = "snapshots"

    id: str
    project_id: str
    description: str
    data: str
    created_by: str
    created_at: int

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "description": self.description,
            "data": self.data,
            "created_by": self.created_by,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Snapshot:
        return cls(
            id=record["id"],
            project_id=record["project_id"],
            description=record["description"],
            data=record["data"],
            created_by=record["created_by"],
            created_at=record["created_at"],
        )


@dataclass
class UndoEntry:
    """One step in a user's undo stack.

    Attributes:
        before_state: JSON graph fragment restored by undo
        after_state: JSON graph fragment restored by redo
        position: Dense per-(project, user) sequence number
        status: Whether the step is applied, undone, or discarded
    """

    collection: ClassVar[str] = "undo_entries"

    id: str
    project_id: str
    user_id: str
    action_type: str
    before_state: str
    after_state: str
    position: int
    created_at: int
    status: UndoStatus = UndoStatus.APPLIED

    def to_record(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "user_id": self.user_id,
            "action_type": self.action_type,
            "before_state": self.before_state,
            "after_state": self.after_state,
            "position": self.position,
            "status": self.status.value,
            "created_at": self.created_at,
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> UndoEntry:
        return cls(
            id=record["id"],
            project_id=record["project_id"],
            user_id=record["user_id"],
            action_type=record["action_type"],
            before_state=record["before_state"],
            after_state=record["after_state"],
            position=record["position"],
            status=UndoStatus(record["status"]),
            created_at=record["created_at"],
        )


@dataclass
class TableWithColumns:
    """A table together with its columns in display order."""

    table: Table
    columns: list[Column] = field(default_factory=list)


@dataclass
class SchemaGraph:
    """The full schema graph of one project."""

    project_id: str
    tables: list[Table] = field(default_factory=list)
    columns: list[Column] = field(default_factory=list)
    relationships: list[Relationship] = field(default_factory=list)
    enum_types: list[EnumType] = field(default_factory=list)

    def columns_of(self, table_id: str) -> list[Column]:
        return sorted(
            (c for c in self.columns if c.table_id == table_id),
            key=lambda c: c.order,
        )
