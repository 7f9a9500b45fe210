"""
API routes for the SchemaBoard HTTP gateway.

Thin REST wrappers over the engine. The acting user comes from a request
header set by the fronting auth proxy; engine errors are mapped to HTTP
status codes by the handler registered in app.py.
"""

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel, Field

from ..model import (
    ColumnUpdate,
    EnumTypeUpdate,
    RelationshipUpdate,
    RelationType,
    Role,
    SchemaGraph,
    TableUpdate,
    TypeCategory,
)
from ..service import SchemaBoard

logger = logging.getLogger(__name__)

router = APIRouter(tags=["SchemaBoard"])


# --- Request Models ---


class ProjectCreateRequest(BaseModel):
    """Request to create a project."""

    name: str = Field(..., description="Project name")


class ProjectRenameRequest(BaseModel):
    """Request to rename a project."""

    name: str = Field(..., description="New project name")


class CollaboratorAddRequest(BaseModel):
    """Request to add a collaborator."""

    user_id: str = Field(..., description="User to invite")
    role: Role = Field(..., description="Collaborator role")


class TableCreateRequest(BaseModel):
    """Request to create a table."""

    name: str = Field(..., description="Table name")
    x: float = Field(0.0, description="Canvas X coordinate")
    y: float = Field(0.0, description="Canvas Y coordinate")


class ColumnCreateRequest(BaseModel):
    """Request to add a column."""

    name: str = Field(..., description="Column name")
    data_type: str = Field(..., description="Free-text data type")
    type_category: TypeCategory = Field(..., description="Type category")
    is_primary_key: bool = Field(False, description="Part of the primary key")
    is_nullable: bool = Field(True, description="Accepts NULL")
    is_unique: bool = Field(False, description="Has a unique constraint")
    order: int = Field(..., ge=0, description="Position within the table")
    default_value: str | None = Field(None, description="Default expression")
    array_base_type: str | None = Field(None, description="Element type for arrays")
    enum_type_id: str | None = Field(None, description="Referenced enum type")


class ColumnOrderRequest(BaseModel):
    """Request to reorder a table's columns."""

    column_ids: list[str] = Field(..., description="Every column of the table, in order")


class RelationshipCreateRequest(BaseModel):
    """Request to create a relationship."""

    source_table_id: str = Field(..., description="Child table")
    source_column_id: str = Field(..., description="Child column (holds the foreign key)")
    target_table_id: str = Field(..., description="Parent table")
    target_column_id: str = Field(..., description="Parent column")
    relation_type: RelationType = Field(..., description="Cardinality")
    junction_table_id: str | None = Field(None, description="Junction table (many-to-many)")


class EnumTypeCreateRequest(BaseModel):
    """Request to create an enum type."""

    name: str = Field(..., description="Enum type name, unique per project")
    values: list[str] = Field(..., min_length=1, description="Enum values")


class SnapshotCreateRequest(BaseModel):
    """Request to capture a snapshot."""

    description: str = Field("", description="Snapshot description")


# --- Dependencies ---


def get_board(request: Request) -> SchemaBoard:
    """Get the engine from app state."""
    return request.app.state.board


def get_actor(request: Request) -> str | None:
    """Get the acting user from the configured header."""
    return request.headers.get(request.app.state.settings.actor_header) or None


def _graph_to_dict(graph: SchemaGraph) -> dict[str, Any]:
    return {
        "project_id": graph.project_id,
        "tables": [
            {**t.to_record(), "columns": [c.to_record() for c in graph.columns_of(t.id)]}
            for t in graph.tables
        ],
        "relationships": [r.to_record() for r in graph.relationships],
        "enum_types": [e.to_record() for e in graph.enum_types],
    }


# --- Project Routes ---


@router.post("/projects", status_code=201)
async def create_project(
    request: ProjectCreateRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    project_id = await board.projects.create_project(actor, request.name)
    project = await board.projects.get_project(actor, project_id)
    return project.to_record()


@router.get("/projects")
async def list_projects(
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """List the actor's projects, newest first."""
    return [p.to_record() for p in await board.projects.list_projects(actor)]


@router.get("/projects/{project_id}")
async def get_project(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    project = await board.projects.get_project(actor, project_id)
    if project is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return project.to_record()


@router.patch("/projects/{project_id}")
async def rename_project(
    project_id: str,
    request: ProjectRenameRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    project = await board.projects.rename_project(actor, project_id, request.name)
    return project.to_record()


@router.delete("/projects/{project_id}", status_code=204)
async def delete_project(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """Delete a project and everything in it."""
    await board.projects.delete_project(actor, project_id)
    return Response(status_code=204)


@router.get("/projects/{project_id}/graph")
async def get_graph(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """
    Get the project's full schema graph.

    Tables are returned with their columns in display order.
    """
    graph = await board.mutator.load_graph(actor, project_id)
    if graph is None:
        raise HTTPException(status_code=404, detail=f"Project {project_id} not found")
    return _graph_to_dict(graph)


@router.post("/projects/{project_id}/share-link")
async def enable_share_link(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    return {"share_link": await board.projects.enable_share_link(actor, project_id)}


@router.delete("/projects/{project_id}/share-link", status_code=204)
async def revoke_share_link(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    await board.projects.revoke_share_link(actor, project_id)
    return Response(status_code=204)


@router.get("/shared/{link}")
async def get_shared_project(link: str, board: SchemaBoard = Depends(get_board)):
    """Resolve a read-only share link."""
    project = await board.projects.get_by_share_link(link)
    if project is None:
        raise HTTPException(status_code=404, detail="Share link not found")
    return project.to_record()


@router.get("/shared/{link}/graph")
async def get_shared_graph(link: str, board: SchemaBoard = Depends(get_board)):
    """Read the schema graph behind a share link."""
    graph = await board.projects.get_shared_graph(link)
    if graph is None:
        raise HTTPException(status_code=404, detail="Share link not found")
    return _graph_to_dict(graph)


@router.get("/projects/{project_id}/collaborators")
async def list_collaborators(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    return [c.to_record() for c in await board.projects.list_collaborators(actor, project_id)]


@router.post("/projects/{project_id}/collaborators", status_code=201)
async def add_collaborator(
    project_id: str,
    request: CollaboratorAddRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    collaborator = await board.projects.add_collaborator(
        actor, project_id, request.user_id, request.role
    )
    return collaborator.to_record()


@router.delete("/projects/{project_id}/collaborators/{user_id}", status_code=204)
async def remove_collaborator(
    project_id: str,
    user_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    await board.projects.remove_collaborator(actor, project_id, user_id)
    return Response(status_code=204)


# --- Table Routes ---


@router.post("/projects/{project_id}/tables", status_code=201)
async def create_table(
    project_id: str,
    request: TableCreateRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    table_id = await board.mutator.create_table(
        actor, project_id, request.name, request.x, request.y
    )
    return {"id": table_id}


@router.get("/projects/{project_id}/tables")
async def list_tables(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    return [
        {**t.table.to_record(), "columns": [c.to_record() for c in t.columns]}
        for t in await board.mutator.list_tables(actor, project_id)
    ]


@router.get("/tables/{table_id}")
async def get_table(
    table_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    table = await board.mutator.get_table(actor, table_id)
    if table is None:
        raise HTTPException(status_code=404, detail=f"Table {table_id} not found")
    return table.to_record()


@router.patch("/tables/{table_id}")
async def update_table(
    table_id: str,
    patch: TableUpdate,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """
    Partially update a table.

    Only the fields present in the body change.
    """
    table = await board.mutator.update_table(actor, table_id, patch)
    return table.to_record()


@router.delete("/tables/{table_id}")
async def delete_table(
    table_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """
    Delete a table.

    Its columns and every relationship referencing it are removed too.
    """
    deletion = await board.mutator.delete_table(actor, table_id)
    return {
        "table_id": deletion.table_id,
        "column_ids": deletion.column_ids,
        "relationship_ids": deletion.relationship_ids,
    }


# --- Column Routes ---


@router.post("/tables/{table_id}/columns", status_code=201)
async def create_column(
    table_id: str,
    request: ColumnCreateRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    column_id = await board.mutator.create_column(
        actor,
        table_id,
        request.name,
        request.data_type,
        request.type_category,
        is_primary_key=request.is_primary_key,
        is_nullable=request.is_nullable,
        is_unique=request.is_unique,
        order=request.order,
        default_value=request.default_value,
        array_base_type=request.array_base_type,
        enum_type_id=request.enum_type_id,
    )
    return {"id": column_id}


@router.get("/tables/{table_id}/columns")
async def list_columns(
    table_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    return [c.to_record() for c in await board.mutator.list_columns(actor, table_id)]


@router.put("/tables/{table_id}/column-order")
async def reorder_columns(
    table_id: str,
    request: ColumnOrderRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    columns = await board.mutator.reorder_columns(actor, table_id, request.column_ids)
    return [c.to_record() for c in columns]


@router.patch("/columns/{column_id}")
async def update_column(
    column_id: str,
    patch: ColumnUpdate,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    column = await board.mutator.update_column(actor, column_id, patch)
    return column.to_record()


@router.delete("/columns/{column_id}", status_code=204)
async def delete_column(
    column_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """
    Delete a column.

    Fails with 409 while any relationship references the column.
    """
    await board.mutator.delete_column(actor, column_id)
    return Response(status_code=204)


# --- Relationship Routes ---


@router.post("/projects/{project_id}/relationships", status_code=201)
async def create_relationship(
    project_id: str,
    request: RelationshipCreateRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    relationship_id = await board.mutator.create_relationship(
        actor,
        project_id,
        request.source_table_id,
        request.source_column_id,
        request.target_table_id,
        request.target_column_id,
        request.relation_type,
        junction_table_id=request.junction_table_id,
    )
    return {"id": relationship_id}


@router.get("/projects/{project_id}/relationships")
async def list_relationships(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    return [r.to_record() for r in await board.mutator.list_relationships(actor, project_id)]


@router.patch("/relationships/{relationship_id}")
async def update_relationship(
    relationship_id: str,
    patch: RelationshipUpdate,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    relationship = await board.mutator.update_relationship(actor, relationship_id, patch)
    return relationship.to_record()


@router.delete("/relationships/{relationship_id}", status_code=204)
async def delete_relationship(
    relationship_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    await board.mutator.delete_relationship(actor, relationship_id)
    return Response(status_code=204)


# --- Enum Type Routes ---


@router.post("/projects/{project_id}/enum-types", status_code=201)
async def create_enum_type(
    project_id: str,
    request: EnumTypeCreateRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    enum_type_id = await board.mutator.create_enum_type(
        actor, project_id, request.name, request.values
    )
    return {"id": enum_type_id}


@router.get("/projects/{project_id}/enum-types")
async def list_enum_types(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    return [e.to_record() for e in await board.mutator.list_enum_types(actor, project_id)]


@router.patch("/enum-types/{enum_type_id}")
async def update_enum_type(
    enum_type_id: str,
    patch: EnumTypeUpdate,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    enum_type = await board.mutator.update_enum_type(actor, enum_type_id, patch)
    return enum_type.to_record()


@router.delete("/enum-types/{enum_type_id}", status_code=204)
async def delete_enum_type(
    enum_type_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    await board.mutator.delete_enum_type(actor, enum_type_id)
    return Response(status_code=204)


# --- Snapshot Routes ---


@router.post("/projects/{project_id}/snapshots", status_code=201)
async def capture_snapshot(
    project_id: str,
    request: SnapshotCreateRequest,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    snapshot_id = await board.snapshots.capture(actor, project_id, request.description)
    return {"id": snapshot_id}


@router.get("/projects/{project_id}/snapshots")
async def list_snapshots(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """List snapshot metadata, newest first."""
    return [
        {k: v for k, v in s.to_record().items() if k != "data"}
        for s in await board.snapshots.list_snapshots(actor, project_id)
    ]


@router.get("/snapshots/{snapshot_id}")
async def get_snapshot(
    snapshot_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    snapshot = await board.snapshots.get_snapshot(actor, snapshot_id)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"Snapshot {snapshot_id} not found")
    return snapshot.to_record()


@router.post("/snapshots/{snapshot_id}/restore")
async def restore_snapshot(
    snapshot_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """
    Replace the live graph with a snapshot.

    The restore can be reverted with undo.
    """
    graph = await board.snapshots.restore(actor, snapshot_id)
    return _graph_to_dict(graph)


@router.delete("/snapshots/{snapshot_id}", status_code=204)
async def delete_snapshot(
    snapshot_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    await board.snapshots.delete_snapshot(actor, snapshot_id)
    return Response(status_code=204)


# --- Undo Routes ---


def _entry_to_dict(entry) -> dict[str, Any] | None:
    if entry is None:
        return None
    return {
        "id": entry.id,
        "action_type": entry.action_type,
        "position": entry.position,
        "status": entry.status.value,
        "created_at": entry.created_at,
    }


@router.post("/projects/{project_id}/undo")
async def undo(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    """Undo the actor's latest change. Returns null when there is nothing to undo."""
    return {"entry": _entry_to_dict(await board.ledger.undo(actor, project_id))}


@router.post("/projects/{project_id}/redo")
async def redo(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    return {"entry": _entry_to_dict(await board.ledger.redo(actor, project_id))}


@router.get("/projects/{project_id}/history")
async def history(
    project_id: str,
    board: SchemaBoard = Depends(get_board),
    actor: str | None = Depends(get_actor),
):
    return [_entry_to_dict(e) for e in await board.ledger.history(actor, project_id)]
