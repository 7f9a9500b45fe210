"""
Project lifecycle for SchemaBoard.

Projects are the root of every ownership scope. This module creates,
renames and deletes them, manages read-only share links and, when
collaborator roles are enabled, project membership.

Invariants:
    - The creator of a project is its owner, forever
    - Deleting a project removes every record scoped to it in one transaction
    - Share links are unique across projects
    - Membership changes are owner-only
"""

from __future__ import annotations

import logging
import secrets

from ..clock import Clock, now_ms
from ..errors import ConflictError, InvalidArgumentError, NotFoundError, Unauthorized
from ..model.types import Collaborator, Project, Role, SchemaGraph
from .entity_store import EntityStore
from .guard import AuthorizationGuard
from .integrity import load_project_graph

logger = logging.getLogger(__name__)

# Collections scoped directly by project_id, deleted with the project.
_PROJECT_SCOPED = ("relationships", "enum_types", "snapshots", "undo_entries", "collaborators")


def _require_name(name: str) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError("'name' must be a non-empty string", "name")
    return name


class ProjectService:
    """Creates and manages projects.

    Example:
        >>> projects = ProjectService(store, guard)
        >>> project_id = await projects.create_project("user:1", "Billing")
        >>> link = await projects.enable_share_link("user:1", project_id)
    """

    def __init__(
        self,
        store: EntityStore,
        guard: AuthorizationGuard,
        clock: Clock | None = None,
    ) -> None:
        self.store = store
        self.guard = guard
        self._clock = clock or now_ms

    async def create_project(self, actor: str | None, name: str) -> str:
        """Create a project owned by the actor.

        Returns:
            The new project ID
        """
        if not actor:
            raise Unauthorized("Unauthorized: no acting user")
        _require_name(name)

        with self.store.transaction("create_project") as tx:
            now = self._clock()
            project_id = tx.insert(
                "projects",
                {
                    "name": name,
                    "owner_id": actor,
                    "share_link": None,
                    "created_at": now,
                    "updated_at": now,
                },
            )

        logger.info("Created project", extra={"project_id": project_id, "owner_id": actor})
        return project_id

    async def get_project(self, actor: str | None, project_id: str) -> Project | None:
        with self.store.transaction("get_project", write=False) as tx:
            return self.guard.check(tx, actor, project_id).project

    async def list_projects(self, actor: str | None) -> list[Project]:
        """List the projects the actor owns or collaborates on, newest first."""
        if not actor:
            return []
        with self.store.transaction("list_projects", write=False) as tx:
            projects = {
                r["id"]: Project.from_record(r)
                for r in tx.query_by_index("projects", "by_owner", actor)
            }
            if self.guard.collaborator_roles_enabled:
                for membership in tx.query_by_index("collaborators", "by_user", actor):
                    record = tx.get("projects", membership["project_id"])
                    if record is not None:
                        projects[record["id"]] = Project.from_record(record)
        return sorted(projects.values(), key=lambda p: p.created_at, reverse=True)

    async def rename_project(self, actor: str | None, project_id: str, name: str) -> Project:
        _require_name(name)
        with self.store.transaction("rename_project") as tx:
            self.guard.authorize_owner(tx, actor, project_id)
            tx.patch("projects", project_id, {"name": name, "updated_at": self._clock()})
            return Project.from_record(tx.get("projects", project_id))

    async def delete_project(self, actor: str | None, project_id: str) -> None:
        """Delete a project and everything scoped to it."""
        with self.store.transaction("delete_project") as tx:
            self.guard.authorize_owner(tx, actor, project_id)

            removed: dict[str, int] = {}
            tables = tx.query_by_index("tables", "by_project", project_id)
            removed["columns"] = sum(
                tx.delete_by_index("columns", "by_table", t["id"]) for t in tables
            )
            removed["tables"] = tx.delete_by_index("tables", "by_project", project_id)
            for collection in _PROJECT_SCOPED:
                removed[collection] = tx.delete_by_index(collection, "by_project", project_id)
            tx.delete("projects", project_id)

        logger.info(
            "Deleted project",
            extra={"project_id": project_id, "actor": actor, **removed},
        )

    # =========================================================================
    # Share links
    # =========================================================================

    async def enable_share_link(self, actor: str | None, project_id: str) -> str:
        """Create (or return the existing) read-only share link."""
        with self.store.transaction("enable_share_link") as tx:
            project = self.guard.authorize_owner(tx, actor, project_id)
            if project.share_link:
                return project.share_link

            link = secrets.token_urlsafe(16)
            tx.patch("projects", project_id, {"share_link": link, "updated_at": self._clock()})

        logger.info("Enabled share link", extra={"project_id": project_id, "actor": actor})
        return link

    async def revoke_share_link(self, actor: str | None, project_id: str) -> None:
        with self.store.transaction("revoke_share_link") as tx:
            self.guard.authorize_owner(tx, actor, project_id)
            tx.patch("projects", project_id, {"share_link": None, "updated_at": self._clock()})

    async def get_by_share_link(self, link: str) -> Project | None:
        """Resolve a share link to its project without an actor."""
        if not link:
            return None
        with self.store.transaction("get_by_share_link", write=False) as tx:
            rows = tx.query_by_index("projects", "by_share_link", link)
            return Project.from_record(rows[0]) if rows else None

    async def get_shared_graph(self, link: str) -> SchemaGraph | None:
        """Read the schema graph of the project a share link points at."""
        if not link:
            return None
        with self.store.transaction("get_shared_graph", write=False) as tx:
            rows = tx.query_by_index("projects", "by_share_link", link)
            if not rows:
                return None
            return load_project_graph(tx, rows[0]["id"])

    # =========================================================================
    # Collaborators
    # =========================================================================

    async def add_collaborator(
        self,
        actor: str | None,
        project_id: str,
        user_id: str,
        role: Role | str,
    ) -> Collaborator:
        """Invite a user to a project with a role.

        Raises:
            InvalidArgumentError: If the role is unknown or the user is the owner
            ConflictError: "collaborator-exists" if the user is already a member
        """
        try:
            role = Role(role)
        except ValueError as e:
            raise InvalidArgumentError(f"Invalid role '{role}'", "role") from e
        if not user_id:
            raise InvalidArgumentError("'user_id' is required", "user_id")

        with self.store.transaction("add_collaborator") as tx:
            project = self.guard.authorize_owner(tx, actor, project_id)
            if user_id == project.owner_id:
                raise InvalidArgumentError("The owner cannot be added as a collaborator", "user_id")
            if tx.exists_by_index("collaborators", "by_project_user", (project_id, user_id)):
                raise ConflictError(
                    "collaborator-exists",
                    f"{user_id} is already a collaborator on project {project_id}",
                )

            collaborator = Collaborator(
                id="",
                project_id=project_id,
                user_id=user_id,
                role=role,
                invited_at=self._clock(),
                invited_by=actor,  # type: ignore[arg-type]
            )
            record = collaborator.to_record()
            del record["id"]
            collaborator.id = tx.insert("collaborators", record)

        logger.info(
            "Added collaborator",
            extra={"project_id": project_id, "user_id": user_id, "role": role.value},
        )
        return collaborator

    async def remove_collaborator(self, actor: str | None, project_id: str, user_id: str) -> None:
        with self.store.transaction("remove_collaborator") as tx:
            self.guard.authorize_owner(tx, actor, project_id)
            removed = tx.delete_by_index("collaborators", "by_project_user", (project_id, user_id))
            if not removed:
                raise NotFoundError("collaborator", user_id)

    async def list_collaborators(self, actor: str | None, project_id: str) -> list[Collaborator]:
        with self.store.transaction("list_collaborators", write=False) as tx:
            self.guard.authorize_owner(tx, actor, project_id)
            return [
                Collaborator.from_record(r)
                for r in tx.query_by_index("collaborators", "by_project", project_id)
            ]
