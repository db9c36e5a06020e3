"""Filesystem-backed artifact store.

This module handles:
- Mapping {name, extension} keys to files under the store root
- Atomic single-artifact writes and all-or-nothing artifact set publishing
- Enumerating and reading artifacts for the HTTP server

Every write goes to a hidden staging file in the store root and is promoted
with os.replace(), so readers only ever see a complete old or a complete new
file. Names starting with "." are reserved for staging and never listed.
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tempfile
import uuid
from collections.abc import Mapping
from pathlib import Path
from typing import BinaryIO

from wasmhost.types import BINARY_EXTENSION, StoredArtifactInfo

logger = logging.getLogger(__name__)

# Default chunk size for hashing and copying
HASH_CHUNK_SIZE = 64 * 1024  # 64KB

STAGING_PREFIX = ".staging-"
BACKUP_PREFIX = ".backup-"

_FORBIDDEN_CHARS = ("/", "\\", "\x00")


class StoreError(Exception):
    """Base error for artifact store operations."""

    def __init__(self, message: str, code: str = "store_error") -> None:
        super().__init__(message)
        self.code = code


class ArtifactNotFoundError(StoreError):
    """Raised when an artifact is not in the store."""

    def __init__(self, name: str, extension: str) -> None:
        super().__init__(
            f"Artifact not found: {_filename(name, extension)}",
            code="artifact_not_found",
        )
        self.name = name
        self.extension = extension


class StoreWriteError(StoreError):
    """Raised when writing or publishing to the store fails."""

    def __init__(self, message: str, code: str = "store_write_failed") -> None:
        super().__init__(message, code=code)


class StoreReadError(StoreError):
    """Raised when the store cannot be read or enumerated."""

    def __init__(self, message: str, code: str = "store_read_failed") -> None:
        super().__init__(message, code=code)


def _filename(name: str, extension: str) -> str:
    return f"{name}.{extension}" if extension else name


def _promotion_order(extensions: Mapping[str, Path]) -> list[str]:
    # Listing only advertises wasm binaries, so they go live last
    return sorted(extensions, key=lambda ext: ext == BINARY_EXTENSION)


def is_valid_name(name: str) -> bool:
    """Check whether a logical artifact name can be used as a store key.

    Args:
        name: Logical artifact name.

    Returns:
        True if the name is non-empty, is not hidden, and has no path
        separators.
    """
    if not name or name.startswith("."):
        return False
    return not any(c in name for c in _FORBIDDEN_CHARS)


def is_valid_extension(extension: str) -> bool:
    """Check whether an extension can be used as part of a store key."""
    return not any(c in extension for c in _FORBIDDEN_CHARS)


def compute_file_hash(
    file_path: Path,
    chunk_size: int = HASH_CHUNK_SIZE,
) -> str:
    """Compute SHA-256 hash of a file.

    Args:
        file_path: Path to the file.
        chunk_size: Size of chunks for streaming hash.

    Returns:
        SHA-256 hex digest.
    """
    sha256 = hashlib.sha256()
    with file_path.open("rb") as f:
        while chunk := f.read(chunk_size):
            sha256.update(chunk)
    return sha256.hexdigest()


class ArtifactStore:
    """Directory of published artifacts, one file per {name, extension}.

    Written only by the build dispatcher and read only by the server. There
    is no manifest; the directory listing is the index.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, name: str, extension: str) -> Path:
        """Return the file path backing an artifact key."""
        return self.root / _filename(name, extension)

    # Writes

    def put(self, name: str, extension: str, data: bytes | Path) -> Path:
        """Atomically write a single artifact.

        Args:
            name: Logical artifact name.
            extension: Artifact extension without the leading dot.
            data: Artifact bytes, or a file to copy them from.

        Returns:
            Path of the published artifact.

        Raises:
            StoreWriteError: If the key is invalid or the write fails.
        """
        return self.publish(name, {extension: data})[extension]

    def publish(
        self,
        name: str,
        members: Mapping[str, bytes | Path],
    ) -> dict[str, Path]:
        """Publish a set of artifacts sharing a name, all or nothing.

        Every member is first staged to a hidden file in the store root.
        Staged files are then promoted one by one, the wasm binary last so a
        module is never listed before its loader and wrapper exist. If a
        promotion fails, the members promoted so far are restored to their
        previous content (or removed if they did not exist) before the error
        is raised.

        Args:
            name: Logical artifact name shared by all members.
            members: Mapping of extension to bytes or source file.

        Returns:
            Mapping of extension to published path.

        Raises:
            StoreWriteError: If the key is invalid or any write fails.
        """
        if not is_valid_name(name):
            raise StoreWriteError(f"Invalid artifact name: {name!r}", code="invalid_name")
        for extension in members:
            if not is_valid_extension(extension):
                raise StoreWriteError(
                    f"Invalid artifact extension: {extension!r}",
                    code="invalid_extension",
                )

        staged: dict[str, Path] = {}
        backups: dict[str, Path] = {}
        promoted: list[str] = []

        try:
            self.root.mkdir(parents=True, exist_ok=True)
            for extension, data in members.items():
                staged[extension] = self._stage(data)

            for extension in _promotion_order(staged):
                tmp_path = staged[extension]
                target = self.path_for(name, extension)
                if target.exists():
                    backup = self.root / f"{BACKUP_PREFIX}{uuid.uuid4().hex}"
                    os.link(target, backup)
                    backups[extension] = backup
                os.replace(tmp_path, target)
                promoted.append(extension)

        except OSError as e:
            self._rollback(name, promoted, backups)
            logger.error("Failed to publish %s: %s", name, e)
            raise StoreWriteError(f"Failed to publish {name}: {e}") from e

        finally:
            for path in (*staged.values(), *backups.values()):
                path.unlink(missing_ok=True)

        published = {ext: self.path_for(name, ext) for ext in members}
        logger.info(
            "Published %s (%s)",
            name,
            ", ".join(_filename(name, ext) for ext in members),
        )
        return published

    def _stage(self, data: bytes | Path) -> Path:
        fd, tmp_name = tempfile.mkstemp(prefix=STAGING_PREFIX, dir=self.root)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, "wb") as dst:
                if isinstance(data, Path):
                    with data.open("rb") as src:
                        shutil.copyfileobj(src, dst, HASH_CHUNK_SIZE)
                else:
                    dst.write(data)
                dst.flush()
                os.fsync(dst.fileno())
            os.chmod(tmp_path, 0o644)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        return tmp_path

    def _rollback(
        self,
        name: str,
        promoted: list[str],
        backups: dict[str, Path],
    ) -> None:
        for extension in reversed(promoted):
            target = self.path_for(name, extension)
            try:
                if extension in backups:
                    os.replace(backups[extension], target)
                else:
                    target.unlink(missing_ok=True)
            except OSError:
                logger.exception("Could not roll back %s", target)

    # Reads

    def exists(self, name: str, extension: str) -> bool:
        if not is_valid_name(name) or not is_valid_extension(extension):
            return False
        return self.path_for(name, extension).is_file()

    def open(self, name: str, extension: str) -> BinaryIO:
        """Open an artifact for streaming.

        The returned handle keeps reading the version that was current when
        it was opened, even if the artifact is republished meanwhile.

        Raises:
            ArtifactNotFoundError: If the artifact does not exist.
            StoreReadError: If the artifact exists but cannot be opened.
        """
        if not is_valid_name(name) or not is_valid_extension(extension):
            raise ArtifactNotFoundError(name, extension)
        path = self.path_for(name, extension)
        try:
            return path.open("rb")
        except FileNotFoundError:
            raise ArtifactNotFoundError(name, extension) from None
        except OSError as e:
            raise StoreReadError(f"Failed to read {path.name}: {e}") from e

    def get(self, name: str, extension: str) -> bytes:
        """Read an artifact's bytes.

        Raises:
            ArtifactNotFoundError: If the artifact does not exist.
            StoreReadError: If the artifact exists but cannot be read.
        """
        with self.open(name, extension) as f:
            try:
                return f.read()
            except OSError as e:
                raise StoreReadError(
                    f"Failed to read {_filename(name, extension)}: {e}"
                ) from e

    def info(self, name: str, extension: str) -> StoredArtifactInfo:
        """Describe a stored artifact, including its SHA-256."""
        if not self.exists(name, extension):
            raise ArtifactNotFoundError(name, extension)
        path = self.path_for(name, extension)
        try:
            return StoredArtifactInfo(
                name=name,
                extension=extension,
                size_bytes=path.stat().st_size,
                sha256=compute_file_hash(path),
            )
        except OSError as e:
            raise StoreReadError(f"Failed to read {path.name}: {e}") from e

    def list(self, extension: str | None = None) -> list[StoredArtifactInfo]:
        """Enumerate stored artifacts.

        Args:
            extension: Only return artifacts with this extension.

        Returns:
            Artifacts sorted by filename. An absent store root is empty.

        Raises:
            StoreReadError: If the store root cannot be enumerated.
        """
        artifacts: list[StoredArtifactInfo] = []
        try:
            entries = sorted(self.root.iterdir())
        except FileNotFoundError:
            return artifacts
        except OSError as e:
            raise StoreReadError(f"Failed to list {self.root}: {e}") from e

        for path in entries:
            if path.name.startswith("."):
                continue
            name, dot, ext = path.name.rpartition(".")
            if not dot:
                name, ext = path.name, ""
            if extension is not None and ext != extension:
                continue
            try:
                if not path.is_file():
                    continue
                size_bytes = path.stat().st_size
            except FileNotFoundError:
                # Replaced or removed between listing and stat
                continue
            except OSError as e:
                raise StoreReadError(f"Failed to stat {path.name}: {e}") from e
            artifacts.append(
                StoredArtifactInfo(name=name, extension=ext, size_bytes=size_bytes)
            )

        logger.debug("Listed %d artifacts in %s", len(artifacts), self.root)
        return artifacts


__all__ = [
    "HASH_CHUNK_SIZE",
    "ArtifactNotFoundError",
    "ArtifactStore",
    "StoreError",
    "StoreReadError",
    "StoreWriteError",
    "compute_file_hash",
    "is_valid_extension",
    "is_valid_name",
]
