"""Scoped working areas and per-name build locks.

A working area is a scratch directory named after the build's output name.
It is created fresh when a build starts and removed on every exit path.
"""

from __future__ import annotations

import fcntl
import logging
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

logger = logging.getLogger(__name__)


def working_area_path(scratch_root: Path, output_name: str) -> Path:
    """Return the working area path for an output name."""
    return scratch_root / f"build_{output_name}"


@contextmanager
def working_area(scratch_root: Path, output_name: str) -> Iterator[Path]:
    """Create a working area for a build and tear it down afterwards.

    A leftover area from an earlier build of the same name (for example one
    that was killed) is removed before the new one is created.

    Args:
        scratch_root: Root directory for working areas.
        output_name: Logical output name of the build.

    Yields:
        Path to the empty working area.
    """
    work_dir = working_area_path(scratch_root, output_name)
    if work_dir.exists():
        logger.warning("Removing stale working area: %s", work_dir)
        shutil.rmtree(work_dir)
    work_dir.mkdir(parents=True)
    logger.debug("Created working area: %s", work_dir)
    try:
        yield work_dir
    finally:
        shutil.rmtree(work_dir, ignore_errors=True)
        logger.debug("Removed working area: %s", work_dir)


@contextmanager
def build_lock(lock_dir: Path, output_name: str) -> Iterator[None]:
    """Hold an exclusive lock on one output name for the duration of a build.

    Blocks until any other holder of the same name releases it. Builds of
    different names never wait on each other.

    Args:
        lock_dir: Directory for lock files.
        output_name: Output name to lock on.

    Yields:
        None while the lock is held.
    """
    lock_dir.mkdir(parents=True, exist_ok=True)
    lock_file = lock_dir / f"build_{output_name}.lock"

    with lock_file.open("a") as handle:
        logger.debug("Waiting for build lock on %s", output_name)
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            logger.debug("Released build lock on %s", output_name)


__all__ = ["build_lock", "working_area", "working_area_path"]
