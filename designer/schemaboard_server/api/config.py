"""
Configuration for the SchemaBoard HTTP gateway.
"""

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HTTP gateway configuration."""

    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080)

    # Header carrying the authenticated user id, set by the fronting auth proxy
    actor_header: str = Field(default="X-Actor")

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:5173"],
    )

    model_config = {"env_prefix": "SCHEMABOARD_"}
