"""
FastAPI application entrypoint for connecting Basecamp accounts.
"""

from __future__ import annotations

from fastapi import FastAPI

from basecamp_mcp.api.routes import router
from basecamp_mcp.core.config import get_settings
from basecamp_mcp.core.logging import configure_logging


def create_app() -> FastAPI:
    """Factory for the FastAPI application."""
    settings = get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(
        title="Basecamp MCP",
        version="0.1.0",
        description="OAuth onboarding for the read-only Basecamp agent gateway.",
    )
    app.include_router(router)
    return app


app = create_app()

__all__ = ["app", "create_app"]
