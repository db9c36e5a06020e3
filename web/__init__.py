"""FastAPI web application serving the wasmhost artifact store.

All artifact access is delegated to wasmhost.store.
"""

from web.app import create_app, serve

__all__ = ["create_app", "serve"]
