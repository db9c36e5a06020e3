"""Shared type definitions for wasmhost.

This module contains enums, dataclasses, and constants shared across
subpackages to avoid circular imports.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path

# Extensions of the normalized artifact triplet (stored without the dot)
BINARY_EXTENSION = "wasm"
LOADER_EXTENSION = "js"
WRAPPER_EXTENSION = "ts"


class SourceKind(str, Enum):
    """Compilation pipeline required by a source module."""

    SYSTEMS_LANG = "systems-lang"
    C_FAMILY = "c-family"
    UNSUPPORTED = "unsupported"


SOURCE_EXTENSIONS: dict[str, SourceKind] = {
    ".rs": SourceKind.SYSTEMS_LANG,
    ".c": SourceKind.C_FAMILY,
    ".cpp": SourceKind.C_FAMILY,
}


def infer_source_kind(source_path: Path | str) -> SourceKind:
    """Classify a source file by its extension.

    Args:
        source_path: Path to the source file.

    Returns:
        The matching SourceKind, or SourceKind.UNSUPPORTED. Extensions are
        matched exactly, so "MOD.RS" is unsupported.
    """
    suffix = Path(source_path).suffix
    return SOURCE_EXTENSIONS.get(suffix, SourceKind.UNSUPPORTED)


@dataclass(frozen=True)
class SourceModule:
    """A source file paired with its inferred kind."""

    path: Path
    kind: SourceKind

    @classmethod
    def from_path(cls, path: Path | str) -> "SourceModule":
        source = Path(path)
        return cls(path=source, kind=infer_source_kind(source))


@dataclass(frozen=True)
class BuildOutputs:
    """Raw triplet produced by a toolchain adapter inside a working area.

    Attributes:
        binary: Compiled WebAssembly module.
        loader: JavaScript loader that instantiates the binary.
        wrapper: TypeScript entry point re-exporting the loader.
    """

    binary: Path
    loader: Path
    wrapper: Path

    def by_extension(self) -> dict[str, Path]:
        """Map each member to the store extension it is published under."""
        return {
            BINARY_EXTENSION: self.binary,
            LOADER_EXTENSION: self.loader,
            WRAPPER_EXTENSION: self.wrapper,
        }


@dataclass
class StoredArtifactInfo:
    """Information about an artifact held in the store."""

    name: str
    extension: str
    size_bytes: int
    sha256: str | None = None

    @property
    def filename(self) -> str:
        return f"{self.name}.{self.extension}" if self.extension else self.name


@dataclass
class BuildResult:
    """Published artifact triplet of a successful build.

    Attributes:
        output_name: Logical module name shared by all three artifacts.
        source_kind: Pipeline that produced the artifacts.
        binary: Published wasm artifact.
        loader: Published JavaScript loader.
        wrapper: Published TypeScript wrapper.
        log_path: Toolchain log for the build, if one was kept.
    """

    output_name: str
    source_kind: SourceKind
    binary: StoredArtifactInfo
    loader: StoredArtifactInfo
    wrapper: StoredArtifactInfo
    log_path: Path | None = None

    @property
    def artifacts(self) -> list[StoredArtifactInfo]:
        return [self.binary, self.loader, self.wrapper]


__all__ = [
    "BINARY_EXTENSION",
    "LOADER_EXTENSION",
    "SOURCE_EXTENSIONS",
    "WRAPPER_EXTENSION",
    "BuildOutputs",
    "BuildResult",
    "SourceKind",
    "SourceModule",
    "StoredArtifactInfo",
    "infer_source_kind",
]
