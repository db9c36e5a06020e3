"""Artifact listing and download endpoints.

- GET / - HTML index of published wasm modules
- GET /{name}.{ext} - Raw artifact bytes with a content type from MIME_TYPES

Missing artifacts are 404 and any other store failure is 500, both with a
plain-text body.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from fastapi import APIRouter, Request, Response
from fastapi import status as http_status
from fastapi.responses import HTMLResponse, PlainTextResponse, StreamingResponse
from fastapi.templating import Jinja2Templates

from wasmhost.store import HASH_CHUNK_SIZE, ArtifactNotFoundError, StoreError
from wasmhost.types import BINARY_EXTENSION
from web.deps import Store

logger = logging.getLogger(__name__)

router = APIRouter()

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"
templates = Jinja2Templates(directory=str(TEMPLATES_DIR))

MIME_TYPES: dict[str, str] = {
    ".wasm": "application/wasm",
    ".js": "application/javascript",
    ".ts": "application/typescript",
    ".html": "text/html",
}
DEFAULT_MIME_TYPE = "application/octet-stream"

NOT_FOUND_BODY = "404 Not Found"
INTERNAL_ERROR_BODY = "500 Internal Error"


def content_type_for(extension: str) -> str:
    """Resolve the content type for an artifact extension (without the dot)."""
    return MIME_TYPES.get(f".{extension}", DEFAULT_MIME_TYPE)


def split_filename(filename: str) -> tuple[str, str]:
    """Split a requested filename into store name and extension.

    The split is at the last dot; a filename without a dot has an empty
    extension.
    """
    name, dot, extension = filename.rpartition(".")
    if not dot:
        return filename, ""
    return name, extension


def _iter_file(handle: BinaryIO) -> Iterator[bytes]:
    try:
        while chunk := handle.read(HASH_CHUNK_SIZE):
            yield chunk
    finally:
        handle.close()


@router.get("/", response_class=HTMLResponse, response_model=None)
def index(request: Request, store: Store) -> Response:
    """Render the index of published wasm modules.

    Loaders and wrappers are not listed; they are reachable by name.
    """
    try:
        modules = store.list(BINARY_EXTENSION)
    except StoreError:
        logger.exception("Failed to enumerate artifact store")
        return PlainTextResponse(
            INTERNAL_ERROR_BODY,
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return templates.TemplateResponse(
        request=request,
        name="index.html",
        context={"modules": modules},
    )


@router.get("/{filename}", response_model=None)
def download(filename: str, store: Store) -> StreamingResponse | PlainTextResponse:
    """Stream an artifact from the store.

    The file is opened before the response starts, so a concurrent publish
    of the same name cannot change the bytes mid-response.
    """
    name, extension = split_filename(filename)
    try:
        handle = store.open(name, extension)
    except ArtifactNotFoundError:
        logger.debug("Artifact not found: %s", filename)
        return PlainTextResponse(
            NOT_FOUND_BODY,
            status_code=http_status.HTTP_404_NOT_FOUND,
        )
    except StoreError:
        logger.exception("Failed to open artifact %s", filename)
        return PlainTextResponse(
            INTERNAL_ERROR_BODY,
            status_code=http_status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    return StreamingResponse(_iter_file(handle), media_type=content_type_for(extension))


__all__ = [
    "DEFAULT_MIME_TYPE",
    "MIME_TYPES",
    "content_type_for",
    "router",
    "split_filename",
]
