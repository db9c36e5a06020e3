"""Toolchain runner for executing external compiler commands.

This module handles:
- Executing toolchain commands with subprocess
- Capturing stdout/stderr and appending them to a build log
- Turning non-zero exits, timeouts and missing executables into
  ToolchainFailureError
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

# Variables that would override the fixed flag sets of the toolchains
SCRUBBED_ENV_VARS = ("RUSTFLAGS", "CARGO_ENCODED_RUSTFLAGS", "EMCC_CFLAGS")


class BuildError(Exception):
    """Base error for build operations."""

    def __init__(self, message: str, code: str = "build_error") -> None:
        super().__init__(message)
        self.code = code


class ToolchainFailureError(BuildError):
    """Raised when an external toolchain invocation fails."""

    def __init__(
        self,
        message: str,
        stderr: str = "",
        exit_code: int | None = None,
        command: str | None = None,
        code: str = "toolchain_failed",
    ) -> None:
        super().__init__(message, code=code)
        self.stderr = stderr
        self.exit_code = exit_code
        self.command = command


@dataclass
class ToolResult:
    """Result of a successful toolchain invocation.

    Attributes:
        command: The command that was executed.
        stdout: Captured standard output.
        stderr: Captured standard error.
        started_at: Invocation start time.
        finished_at: Invocation finish time.
    """

    command: str
    stdout: str
    stderr: str
    started_at: datetime
    finished_at: datetime


def toolchain_env(overrides: Mapping[str, str] | None = None) -> dict[str, str]:
    """Build the environment a toolchain process runs with.

    The process environment is inherited so tools can be found on PATH,
    minus variables that would alter the fixed compiler flags.

    Args:
        overrides: Variables to set on top of the inherited environment.

    Returns:
        Environment mapping for subprocess.
    """
    env = {k: v for k, v in os.environ.items() if k not in SCRUBBED_ENV_VARS}
    if overrides:
        env.update(overrides)
    return env


def _append_log(log_path: Path | None, lines: Sequence[str]) -> None:
    if log_path is None:
        return
    log_path.parent.mkdir(parents=True, exist_ok=True)
    with log_path.open("a", encoding="utf-8") as log_file:
        log_file.writelines(lines)


def run_tool(
    cmd: Sequence[str],
    cwd: Path,
    log_path: Path | None = None,
    env: Mapping[str, str] | None = None,
    timeout: int | None = None,
) -> ToolResult:
    """Execute one toolchain command.

    Args:
        cmd: Command as list of strings.
        cwd: Working directory for the command.
        log_path: Build log to append command output to.
        env: Environment overrides (see toolchain_env).
        timeout: Timeout in seconds (None = no timeout).

    Returns:
        ToolResult with captured output.

    Raises:
        ToolchainFailureError: If the tool cannot be started, times out, or
            exits with a non-zero status.
    """
    cmd_str = shlex.join(cmd)
    logger.info("Executing: %s", cmd_str)
    logger.debug("Working directory: %s", cwd)

    started_at = datetime.now(timezone.utc)
    _append_log(
        log_path,
        [
            f"# Command: {cmd_str}\n",
            f"# Started: {started_at.isoformat()}\n",
            f"# CWD: {cwd}\n",
        ],
    )

    try:
        result = subprocess.run(
            list(cmd),
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=timeout,
            env=toolchain_env(env),
            check=False,
        )

    except subprocess.TimeoutExpired as e:
        message = f"{cmd[0]} timed out after {timeout} seconds"
        logger.error("%s", message)
        _append_log(log_path, [f"# TIMEOUT after {timeout} seconds\n\n"])
        stderr = e.stderr.decode() if isinstance(e.stderr, bytes) else e.stderr
        raise ToolchainFailureError(
            message,
            stderr=stderr or "",
            command=cmd_str,
            code="toolchain_timeout",
        ) from e

    except OSError as e:
        message = f"Failed to execute {cmd[0]}: {e}"
        logger.error("%s", message)
        _append_log(log_path, [f"# ERROR: {message}\n\n"])
        raise ToolchainFailureError(
            message,
            stderr=str(e),
            command=cmd_str,
            code="toolchain_missing",
        ) from e

    finished_at = datetime.now(timezone.utc)
    duration = (finished_at - started_at).total_seconds()
    _append_log(
        log_path,
        [
            result.stdout or "",
            result.stderr or "",
            f"\n# Finished: {finished_at.isoformat()}\n",
            f"# Exit code: {result.returncode}\n",
            f"# Duration: {duration:.1f}s\n\n",
        ],
    )

    if result.returncode != 0:
        message = f"{cmd[0]} failed with exit code {result.returncode}"
        logger.error("%s. See log: %s", message, log_path)
        raise ToolchainFailureError(
            message,
            stderr=result.stderr or "",
            exit_code=result.returncode,
            command=cmd_str,
        )

    return ToolResult(
        command=cmd_str,
        stdout=result.stdout or "",
        stderr=result.stderr or "",
        started_at=started_at,
        finished_at=finished_at,
    )


__all__ = [
    "SCRUBBED_ENV_VARS",
    "BuildError",
    "ToolResult",
    "ToolchainFailureError",
    "run_tool",
    "toolchain_env",
]
