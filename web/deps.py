"""Artifact store dependency for FastAPI.

Provides the artifact store to route handlers via FastAPI dependency
injection. The store is created once per application and holds no
per-request state; each handler only borrows read access.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request

from wasmhost.store import ArtifactStore


def get_store(request: Request) -> ArtifactStore:
    """Get the artifact store from app state.

    Args:
        request: FastAPI request object.

    Returns:
        Artifact store configured for the application.
    """
    store: ArtifactStore = request.app.state.store
    return store


Store = Annotated[ArtifactStore, Depends(get_store)]
