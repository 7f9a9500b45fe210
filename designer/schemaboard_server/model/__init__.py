"""
Model module for SchemaBoard - stored records and partial updates.

Invariants:
    - Closed variants (TypeCategory, RelationType, Role) are Enums
    - Partial updates never reset omitted fields
"""

from .patches import (
    ColumnUpdate,
    EnumTypeUpdate,
    PartialUpdate,
    RelationshipUpdate,
    TableUpdate,
)
from .types import (
    Capability,
    Collaborator,
    Column,
    EnumType,
    Project,
    Relationship,
    RelationType,
    Role,
    SchemaGraph,
    Snapshot,
    Table,
    TableWithColumns,
    TypeCategory,
    UndoEntry,
    UndoStatus,
)

__all__ = [
    "Capability",
    "Collaborator",
    "Column",
    "ColumnUpdate",
    "EnumType",
    "EnumTypeUpdate",
    "PartialUpdate",
    "Project",
    "Relationship",
    "RelationshipUpdate",
    "RelationType",
    "Role",
    "SchemaGraph",
    "Snapshot",
    "Table",
    "TableUpdate",
    "TableWithColumns",
    "TypeCategory",
    "UndoEntry",
    "UndoStatus",
]
