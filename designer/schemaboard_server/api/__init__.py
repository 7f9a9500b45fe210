"""
HTTP gateway for SchemaBoard.

A thin FastAPI surface over the engine; all validation and authorization
happen in the engine itself.
"""

from .app import STATUS_BY_CODE, create_app
from .config import Settings

__all__ = ["STATUS_BY_CODE", "Settings", "create_app"]
