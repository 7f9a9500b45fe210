"""
Shared fixtures for SchemaBoard tests.

Every test gets its own SQLite file in a temporary directory and a
ticking fake clock, so timestamps strictly increase between operations.
"""

import tempfile
from types import SimpleNamespace

import pytest
import pytest_asyncio

from designer.schemaboard_server.config import (
    AccessConfig,
    ObservabilityConfig,
    ServerConfig,
    StorageConfig,
)
from designer.schemaboard_server.model import RelationType, TypeCategory
from designer.schemaboard_server.service import SchemaBoard


class FakeClock:
    """Millisecond clock that advances by ``step`` on every read."""

    def __init__(self, start: int = 1_700_000_000_000, step: int = 1) -> None:
        self.now = start
        self.step = step

    def __call__(self) -> int:
        self.now += self.step
        return self.now


def make_config(data_dir: str, collaborator_roles_enabled: bool = False) -> ServerConfig:
    return ServerConfig(
        storage=StorageConfig(data_dir=data_dir, wal_mode=False),
        access=AccessConfig(collaborator_roles_enabled=collaborator_roles_enabled),
        observability=ObservabilityConfig(log_format="text"),
    )


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_board(data_dir, clock):
    """Factory for an initialized engine over the test's data directory."""

    async def factory(collaborator_roles_enabled: bool = False) -> SchemaBoard:
        board = SchemaBoard(
            make_config(data_dir, collaborator_roles_enabled=collaborator_roles_enabled),
            clock=clock,
        )
        await board.initialize()
        return board

    return factory


@pytest_asyncio.fixture
async def board(make_board):
    """Initialized engine with collaborator roles disabled."""
    return await make_board()


@pytest_asyncio.fixture
async def project_id(board):
    """Project owned by user:alice."""
    return await board.projects.create_project("user:alice", "Test Project")


@pytest_asyncio.fixture
async def schema(board, project_id):
    """users(id) <- posts(author_id) one-to-many, owned by user:alice."""
    actor = "user:alice"
    mutator = board.mutator

    users = await mutator.create_table(actor, project_id, "users", 0, 0)
    user_id_col = await mutator.create_column(
        actor, users, "id", "uuid", TypeCategory.UUID,
        is_primary_key=True, is_nullable=False, is_unique=True, order=0,
    )
    user_email_col = await mutator.create_column(
        actor, users, "email", "text", TypeCategory.TEXT,
        is_primary_key=False, is_nullable=False, is_unique=True, order=1,
    )

    posts = await mutator.create_table(actor, project_id, "posts", 300, 0)
    post_id_col = await mutator.create_column(
        actor, posts, "id", "uuid", TypeCategory.UUID,
        is_primary_key=True, is_nullable=False, is_unique=True, order=0,
    )
    author_col = await mutator.create_column(
        actor, posts, "author_id", "uuid", TypeCategory.UUID,
        is_primary_key=False, is_nullable=False, is_unique=False, order=1,
    )

    relationship = await mutator.create_relationship(
        actor, project_id,
        source_table_id=posts, source_column_id=author_col,
        target_table_id=users, target_column_id=user_id_col,
        relation_type=RelationType.ONE_TO_MANY,
    )

    return SimpleNamespace(
        project_id=project_id,
        users=users,
        user_id_col=user_id_col,
        user_email_col=user_email_col,
        posts=posts,
        post_id_col=post_id_col,
        author_col=author_col,
        relationship=relationship,
    )
