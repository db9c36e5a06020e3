"""Build service module.

This module provides the high-level build API:
- build(): Main entry point - compile a source file and publish its triplet
- Source kind dispatch through a handler table
- Working area lifecycle and optional per-name locking
- Atomic publishing into the artifact store

Builds of the same output name are expected to be run one at a time by the
caller (set `lock_builds` to enforce it); the last build to publish wins.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING

from wasmhost.builds.emscripten import EmscriptenToolchain, build_emscripten
from wasmhost.builds.runner import BuildError, ToolchainFailureError
from wasmhost.builds.rust import RustToolchain, build_rust
from wasmhost.builds.workspace import build_lock, working_area
from wasmhost.config import get_settings
from wasmhost.store import ArtifactStore, StoreError, is_valid_name
from wasmhost.types import (
    BINARY_EXTENSION,
    LOADER_EXTENSION,
    WRAPPER_EXTENSION,
    BuildOutputs,
    BuildResult,
    SourceKind,
    SourceModule,
)

if TYPE_CHECKING:
    from wasmhost.config import Settings

logger = logging.getLogger(__name__)

# Adapter signature: (source, output_name, work_dir, settings, log_path)
Adapter = Callable[[Path, str, Path, "Settings", "Path | None"], BuildOutputs]


class InvalidOutputNameError(BuildError):
    """Raised when an output name cannot be used as a store key."""

    def __init__(self, output_name: str) -> None:
        super().__init__(
            f"Invalid output name: {output_name!r} "
            "(must be non-empty, not start with '.', and contain no path separators)",
            code="invalid_output_name",
        )
        self.output_name = output_name


class SourceNotFoundError(BuildError):
    """Raised when the source file does not exist."""

    def __init__(self, source_path: Path) -> None:
        super().__init__(f"Source file not found: {source_path}", code="source_not_found")
        self.source_path = source_path


class UnsupportedSourceKindError(BuildError):
    """Raised when no pipeline handles the source file's extension."""

    def __init__(self, source_path: Path) -> None:
        suffix = source_path.suffix.lstrip(".") or "(none)"
        super().__init__(
            f"Unsupported source file type: {suffix}",
            code="unsupported_source_kind",
        )
        self.source_path = source_path


class StorePublishError(BuildError):
    """Raised when a built triplet cannot be published to the store."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="store_write_failed")


def _run_rust(
    source: Path,
    output_name: str,
    work_dir: Path,
    settings: Settings,
    log_path: Path | None,
) -> BuildOutputs:
    return build_rust(
        source,
        output_name,
        work_dir,
        RustToolchain.from_settings(settings),
        log_path=log_path,
    )


def _run_emscripten(
    source: Path,
    output_name: str,
    work_dir: Path,
    settings: Settings,
    log_path: Path | None,
) -> BuildOutputs:
    return build_emscripten(
        source,
        output_name,
        work_dir,
        EmscriptenToolchain.from_settings(settings),
        log_path=log_path,
    )


ADAPTERS: dict[SourceKind, Adapter] = {
    SourceKind.SYSTEMS_LANG: _run_rust,
    SourceKind.C_FAMILY: _run_emscripten,
}


def resolve_source(source_path: Path | str) -> SourceModule:
    """Classify a source file, rejecting kinds without a pipeline.

    Raises:
        UnsupportedSourceKindError: If no adapter handles the extension.
    """
    module = SourceModule.from_path(source_path)
    if module.kind not in ADAPTERS:
        raise UnsupportedSourceKindError(module.path)
    return module


def get_store(settings: Settings | None = None) -> ArtifactStore:
    if settings is None:
        settings = get_settings()
    return ArtifactStore(settings.store_dir)


def _publish(
    store: ArtifactStore,
    output_name: str,
    outputs: BuildOutputs,
    kind: SourceKind,
    log_path: Path | None,
) -> BuildResult:
    try:
        store.publish(output_name, outputs.by_extension())
        return BuildResult(
            output_name=output_name,
            source_kind=kind,
            binary=store.info(output_name, BINARY_EXTENSION),
            loader=store.info(output_name, LOADER_EXTENSION),
            wrapper=store.info(output_name, WRAPPER_EXTENSION),
            log_path=log_path,
        )
    except StoreError as e:
        raise StorePublishError(str(e)) from e


def build(
    source_path: Path | str,
    output_name: str,
    settings: Settings | None = None,
    store: ArtifactStore | None = None,
) -> BuildResult:
    """Build a source file and publish its wasm/js/ts triplet.

    This is the main entry point for the build pipeline. It:
    1. Validates the output name and infers the source kind
    2. Creates a working area named after the output
    3. Runs the adapter for the source kind
    4. Publishes all three outputs to the store, all or nothing
    5. Removes the working area on every exit path

    Args:
        source_path: Source file to build (.rs, .c, .cpp, ...).
        output_name: Logical name shared by the published artifacts.
        settings: Application settings.
        store: Artifact store to publish into (defaults to settings.store_dir).

    Returns:
        BuildResult describing the published artifacts.

    Raises:
        InvalidOutputNameError: If the output name is not a valid store key.
        UnsupportedSourceKindError: If the source extension is not handled.
        SourceNotFoundError: If the source file does not exist.
        ToolchainFailureError: If an external tool fails.
        StorePublishError: If publishing to the store fails.
    """
    if settings is None:
        settings = get_settings()
    if store is None:
        store = get_store(settings)

    if not is_valid_name(output_name):
        raise InvalidOutputNameError(output_name)

    module = resolve_source(source_path)
    if not module.path.is_file():
        raise SourceNotFoundError(module.path)

    adapter = ADAPTERS[module.kind]
    log_path = settings.log_dir / f"{output_name}.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    log_path.write_text(f"# Build {output_name} from {module.path}\n", encoding="utf-8")

    logger.info(
        "Building %s as %s (%s)", module.path, output_name, module.kind.value
    )

    if settings.lock_builds:
        with build_lock(settings.scratch_dir / ".locks", output_name):
            return _build_in_working_area(
                module, output_name, adapter, settings, store, log_path
            )
    return _build_in_working_area(module, output_name, adapter, settings, store, log_path)


def _build_in_working_area(
    module: SourceModule,
    output_name: str,
    adapter: Adapter,
    settings: Settings,
    store: ArtifactStore,
    log_path: Path,
) -> BuildResult:
    with working_area(settings.scratch_dir, output_name) as work_dir:
        try:
            outputs = adapter(module.path, output_name, work_dir, settings, log_path)
        except ToolchainFailureError as e:
            logger.error("Build of %s failed: %s", output_name, e)
            raise

        result = _publish(store, output_name, outputs, module.kind, log_path)

    logger.info(
        "Build of %s succeeded: %s",
        output_name,
        ", ".join(a.filename for a in result.artifacts),
    )
    return result


__all__ = [
    "ADAPTERS",
    "InvalidOutputNameError",
    "SourceNotFoundError",
    "StorePublishError",
    "UnsupportedSourceKindError",
    "build",
    "get_store",
    "resolve_source",
]
