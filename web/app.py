"""FastAPI application factory and main app.

This module creates the artifact server application with its router,
plain-text error handlers and the artifact store configured.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from wasmhost import __version__
from wasmhost.config import Settings, get_settings
from wasmhost.store import ArtifactStore
from web.routers import artifacts

logger = logging.getLogger(__name__)


async def http_error_handler(
    request: Request, exc: StarletteHTTPException
) -> PlainTextResponse:
    """Render framework HTTP errors (unknown paths, wrong verbs) as text."""
    return PlainTextResponse(
        f"{exc.status_code} {exc.detail}",
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


async def internal_error_handler(request: Request, exc: Exception) -> PlainTextResponse:
    """Turn any unhandled error into a 500 without touching the listener."""
    logger.exception("Unhandled error serving %s", request.url.path)
    return PlainTextResponse(artifacts.INTERNAL_ERROR_BODY, status_code=500)


def create_app(
    settings: Settings | None = None,
    store: ArtifactStore | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        settings: Application settings (loaded from environment if omitted).
        store: Artifact store to serve (defaults to settings.store_dir).

    Returns:
        Configured FastAPI application.
    """
    if store is None:
        if settings is None:
            settings = get_settings()
        store = ArtifactStore(settings.store_dir)

    application = FastAPI(
        title="wasmhost artifact server",
        description="Lists and serves published WebAssembly modules, "
        "their loaders and wrappers",
        version=__version__,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    application.state.store = store

    application.add_exception_handler(StarletteHTTPException, http_error_handler)
    application.add_exception_handler(Exception, internal_error_handler)

    application.include_router(artifacts.router, tags=["artifacts"])

    return application


def serve(settings: Settings | None = None) -> None:
    """Run the artifact server until interrupted.

    Args:
        settings: Application settings (loaded from environment if omitted).
    """
    import uvicorn

    if settings is None:
        settings = get_settings()

    logger.info(
        "Serving %s on %s:%d", settings.store_dir, settings.host, settings.port
    )
    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
