"""Configuration settings for wasmhost.

Uses pydantic-settings for config parsing from environment variables
and defaults. Configuration precedence: CLI flags > env vars > defaults.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


def _default_store_dir() -> Path:
    """Return the default artifact store directory."""
    return Path.home() / ".local" / "share" / "wasmhost" / "store"


def _default_scratch_dir() -> Path:
    """Return the default scratch directory for build working areas."""
    return Path.home() / ".cache" / "wasmhost" / "scratch"


def _default_log_dir() -> Path:
    """Return the default directory for build logs."""
    return Path.home() / ".local" / "share" / "wasmhost" / "logs"


class Settings(BaseSettings):
    """Application settings.

    Settings are loaded from environment variables with the WASMHOST_ prefix.
    CLI flags can override these at runtime.
    """

    model_config = SettingsConfigDict(
        env_prefix="WASMHOST_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Paths
    store_dir: Path = Field(
        default_factory=_default_store_dir,
        description="Root directory of the artifact store",
    )
    scratch_dir: Path = Field(
        default_factory=_default_scratch_dir,
        description="Root directory for per-build working areas",
    )
    log_dir: Path = Field(
        default_factory=_default_log_dir,
        description="Directory for per-build toolchain logs",
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Artifact server bind address")
    port: int = Field(
        default=8000,
        ge=1,
        le=65535,
        description="Artifact server port",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    # Builds
    build_timeout: int | None = Field(
        default=None,
        ge=1,
        description="Timeout per toolchain invocation in seconds (unset = wait forever)",
    )
    lock_builds: bool = Field(
        default=False,
        description="Serialize builds sharing an output name with a file lock",
    )

    # Toolchains
    runtime: str = Field(
        default="deno",
        description="Host runtime targeted by loaders and bindings",
    )
    cargo: str = Field(default="cargo", description="cargo executable")
    wasm_bindgen: str = Field(
        default="wasm-bindgen",
        description="wasm-bindgen CLI executable",
    )
    emcc: str = Field(default="emcc", description="Emscripten C compiler")
    empp: str = Field(default="em++", description="Emscripten C++ compiler")
    em_config: Path | None = Field(
        default=None,
        description="Emscripten config file (exported as EM_CONFIG)",
    )


def get_settings() -> Settings:
    """Get the application settings.

    Returns:
        Settings instance loaded from environment.
    """
    return Settings()


def print_settings_json(settings: Settings | None = None) -> str:
    """Render effective settings as JSON.

    Args:
        settings: Optional settings instance; uses default if not provided.

    Returns:
        JSON string of effective settings.
    """
    if settings is None:
        settings = get_settings()
    return settings.model_dump_json(indent=2)


__all__ = ["Settings", "get_settings", "print_settings_json"]
