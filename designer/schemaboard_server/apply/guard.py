"""
Authorization guard for SchemaBoard.

This module resolves what an actor may do with a project:
- Capability resolution (read, write) from ownership or collaborator role
- Write checks that raise Unauthorized / NotFoundError
- Read checks that report a decision instead of raising

Invariants:
    - Owner always has full access
    - An absent actor never has access
    - Collaborator roles grant access only when enabled
    - Checks run inside the caller's transaction, against fresh state

How to change safely:
    - New roles must map to a capability set in ROLE_CAPABILITIES
    - New capabilities must be additive
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..errors import NotFoundError, Unauthorized
from ..model.types import Capability, Collaborator, Project, Role
from .entity_store import StoreTransaction

logger = logging.getLogger(__name__)


OWNER_CAPABILITIES: frozenset[Capability] = frozenset({Capability.READ, Capability.WRITE})

ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.EDITOR: frozenset({Capability.READ, Capability.WRITE}),
    Role.VIEWER: frozenset({Capability.READ}),
}


@dataclass(frozen=True)
class AccessDecision:
    """Outcome of a read-path access check.

    Attributes:
        allowed: Whether the required capability is granted
        project: The resolved project (None if missing or denied)
    """

    allowed: bool
    project: Project | None = None


class AuthorizationGuard:
    """Checks project access before any read or mutation.

    Thread safety:
        This class is stateless and thread-safe.

    Example:
        >>> guard = AuthorizationGuard()
        >>> with store.transaction() as tx:
        ...     project = guard.authorize(tx, "user:42", project_id)
    """

    def __init__(self, collaborator_roles_enabled: bool = False) -> None:
        self.collaborator_roles_enabled = collaborator_roles_enabled

    def capabilities_for(
        self,
        tx: StoreTransaction,
        actor_id: str | None,
        project: Project,
    ) -> frozenset[Capability]:
        """Resolve the capabilities an actor holds on a project.

        Args:
            tx: Open store transaction
            actor_id: Acting user, or None if unresolved
            project: Project being accessed

        Returns:
            Granted capabilities (empty when no access)
        """
        if not actor_id:
            return frozenset()

        if actor_id == project.owner_id:
            return OWNER_CAPABILITIES

        if not self.collaborator_roles_enabled:
            return frozenset()

        rows = tx.query_by_index("collaborators", "by_project_user", (project.id, actor_id))
        if not rows:
            return frozenset()
        collaborator = Collaborator.from_record(rows[0])
        return ROLE_CAPABILITIES.get(collaborator.role, frozenset())

    def check(
        self,
        tx: StoreTransaction,
        actor_id: str | None,
        project_id: str,
        required: Capability = Capability.READ,
    ) -> AccessDecision:
        """Check access without raising.

        Used by read entry points, which return empty results on denial.
        """
        record = tx.get("projects", project_id)
        if record is None:
            return AccessDecision(allowed=False)

        project = Project.from_record(record)
        if required not in self.capabilities_for(tx, actor_id, project):
            return AccessDecision(allowed=False)
        return AccessDecision(allowed=True, project=project)

    def authorize(
        self,
        tx: StoreTransaction,
        actor_id: str | None,
        project_id: str,
        required: Capability = Capability.WRITE,
    ) -> Project:
        """Check access and raise if denied.

        Args:
            tx: Open store transaction
            actor_id: Acting user, or None if unresolved
            project_id: Project being accessed
            required: Required capability

        Returns:
            The resolved project

        Raises:
            Unauthorized: If the actor is absent or lacks the capability
            NotFoundError: If the project does not exist
        """
        if not actor_id:
            raise Unauthorized("Unauthorized: no acting user", project_id=project_id)

        record = tx.get("projects", project_id)
        if record is None:
            raise NotFoundError("project", project_id)

        project = Project.from_record(record)
        if required not in self.capabilities_for(tx, actor_id, project):
            logger.info(
                "Access denied",
                extra={
                    "actor": actor_id,
                    "project_id": project_id,
                    "capability": required.value,
                },
            )
            raise Unauthorized(
                f"Unauthorized: {actor_id} lacks {required.value} on project {project_id}",
                actor=actor_id,
                project_id=project_id,
            )
        return project

    def authorize_owner(
        self,
        tx: StoreTransaction,
        actor_id: str | None,
        project_id: str,
    ) -> Project:
        """Require the actor to own the project.

        Sharing, membership and project deletion stay with the owner even
        when collaborator roles are enabled.
        """
        project = self.authorize(tx, actor_id, project_id, Capability.WRITE)
        if project.owner_id != actor_id:
            raise Unauthorized(
                f"Unauthorized: only the owner may manage project {project_id}",
                actor=actor_id,
                project_id=project_id,
            )
        return project
