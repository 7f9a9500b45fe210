"""
FastAPI application factory for the SchemaBoard HTTP gateway.

This module creates the FastAPI app with:
- CORS configuration for the canvas frontend
- Engine lifecycle management
- REST routes under /api/v1
- Mapping of engine errors to HTTP status codes
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..errors import SchemaBoardError
from ..service import SchemaBoard
from .config import Settings
from .routes import router

STATUS_BY_CODE: dict[str, int] = {
    "UNAUTHORIZED": 403,
    "NOT_FOUND": 404,
    "CONFLICT": 409,
    "INVALID_ARGUMENT": 422,
    "CORRUPT_SNAPSHOT": 422,
    "STORE_FAILURE": 503,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Manage engine lifecycle."""
    if app.state.board is None:
        app.state.board = SchemaBoard()
    await app.state.board.initialize()

    yield


async def handle_schemaboard_error(request: Request, exc: SchemaBoardError) -> JSONResponse:
    return JSONResponse(
        status_code=STATUS_BY_CODE.get(exc.code, 500),
        content={"error": {"code": exc.code, "message": exc.message, "details": exc.details}},
    )


def create_app(board: SchemaBoard | None = None, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        board: Engine to serve (built from environment on startup if not provided)
        settings: Gateway settings (loaded from environment if not provided)
    """
    settings = settings or Settings()

    app = FastAPI(
        title="SchemaBoard",
        description="Collaborative database schema designer API.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.board = board
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(SchemaBoardError, handle_schemaboard_error)
    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "schemaboard", "version": __version__}

    return app
