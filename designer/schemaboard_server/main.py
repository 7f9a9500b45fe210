"""
SchemaBoard Server - Main entry point.

This module starts the SchemaBoard HTTP gateway over a local SQLite
engine.

Usage:
    python -m designer.schemaboard_server.main

Engine configuration is entirely via environment variables (see
config.py); gateway settings use the SCHEMABOARD_ prefix (see
api/config.py).

Invariants:
    - Configuration errors exit before anything is bound
    - Logging is configured before the engine starts

How to change safely:
    - Keep uvicorn's own log config off so records flow through our handler
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter
import uvicorn

from .api import Settings, create_app
from .config import ServerConfig
from .service import SchemaBoard

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def main() -> None:
    """Main entry point."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    setup_logging(config)
    config.log_config()

    settings = Settings()
    app = create_app(SchemaBoard(config), settings)

    logger.info("Starting SchemaBoard server", extra={"host": settings.host, "port": settings.port})
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)


if __name__ == "__main__":
    main()
