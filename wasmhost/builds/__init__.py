"""Build orchestration module.

This module handles:
- Source kind dispatch to the Rust and Emscripten adapters
- Running external toolchains
- Scoped working areas and optional per-name locks
- Publishing the wasm/js/ts triplet into the artifact store
"""

from wasmhost.builds.runner import BuildError, ToolchainFailureError
from wasmhost.builds.service import (
    InvalidOutputNameError,
    SourceNotFoundError,
    StorePublishError,
    UnsupportedSourceKindError,
    build,
)

__all__ = [
    "BuildError",
    "InvalidOutputNameError",
    "SourceNotFoundError",
    "StorePublishError",
    "ToolchainFailureError",
    "UnsupportedSourceKindError",
    "build",
]
