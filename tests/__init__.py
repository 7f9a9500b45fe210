"""
SchemaBoard Test Suite.

This package contains:
- unit/: Unit tests per engine module (SQLite in a temporary directory)
- integration/: HTTP gateway tests through FastAPI's TestClient
"""
