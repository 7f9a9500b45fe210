"""
Referential integrity checks over a project's schema graph.

Used wherever a whole graph fragment is written at once (undo/redo and
snapshot restore) to verify that the result has no dangling references.
"""

from __future__ import annotations

from collections import Counter

from ..model.types import Column, EnumType, Relationship, SchemaGraph, Table
from .entity_store import StoreTransaction


def load_project_graph(tx: StoreTransaction, project_id: str) -> SchemaGraph:
    """Read every table, column, relationship and enum type of a project."""
    tables = [Table.from_record(r) for r in tx.query_by_index("tables", "by_project", project_id)]
    columns: list[Column] = []
    for table in tables:
        columns.extend(
            Column.from_record(r) for r in tx.query_by_index("columns", "by_table_order", table.id)
        )
    relationships = [
        Relationship.from_record(r)
        for r in tx.query_by_index("relationships", "by_project", project_id)
    ]
    enum_types = [
        EnumType.from_record(r) for r in tx.query_by_index("enum_types", "by_project", project_id)
    ]
    return SchemaGraph(
        project_id=project_id,
        tables=tables,
        columns=columns,
        relationships=relationships,
        enum_types=enum_types,
    )


def graph_problems(graph: SchemaGraph) -> list[str]:
    """List every dangling or inconsistent reference in a graph.

    Returns:
        Human-readable problems (empty if the graph is consistent)
    """
    problems: list[str] = []
    table_ids = {t.id for t in graph.tables}
    enum_ids = {e.id for e in graph.enum_types}
    column_tables = {c.id: c.table_id for c in graph.columns}

    for table in graph.tables:
        if table.project_id != graph.project_id:
            problems.append(f"table {table.id} belongs to project {table.project_id}")

    for column in graph.columns:
        if column.table_id not in table_ids:
            problems.append(f"column {column.id} references missing table {column.table_id}")
        if column.enum_type_id is not None and column.enum_type_id not in enum_ids:
            problems.append(
                f"column {column.id} references missing enum type {column.enum_type_id}"
            )

    for rel in graph.relationships:
        if rel.project_id != graph.project_id:
            problems.append(f"relationship {rel.id} belongs to project {rel.project_id}")
        for side, table_id, column_id in (
            ("source", rel.source_table_id, rel.source_column_id),
            ("target", rel.target_table_id, rel.target_column_id),
        ):
            if column_id not in column_tables:
                problems.append(f"relationship {rel.id} {side} column {column_id} is missing")
            elif column_tables[column_id] != table_id:
                problems.append(
                    f"relationship {rel.id} {side} column {column_id} "
                    f"does not belong to table {table_id}"
                )
        if rel.relation_type.requires_junction:
            if rel.junction_table_id is None:
                problems.append(f"relationship {rel.id} is many-to-many without junction table")
            elif rel.junction_table_id not in table_ids:
                problems.append(
                    f"relationship {rel.id} references missing junction table "
                    f"{rel.junction_table_id}"
                )
        elif rel.junction_table_id is not None:
            problems.append(f"relationship {rel.id} has a junction table but is not many-to-many")

    for enum_type in graph.enum_types:
        if enum_type.project_id != graph.project_id:
            problems.append(f"enum type {enum_type.id} belongs to project {enum_type.project_id}")
    duplicates = [n for n, count in Counter(e.name for e in graph.enum_types).items() if count > 1]
    for name in duplicates:
        problems.append(f"enum type name '{name}' is not unique")

    return problems
