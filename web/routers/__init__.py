"""Router modules for the artifact server."""

from web.routers import artifacts

__all__ = ["artifacts"]
