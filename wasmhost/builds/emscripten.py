"""C/C++ to WebAssembly adapter (Emscripten).

emcc writes the wasm binary and a modularized ES6 loader in one step but no
typed entry point, so the `<name>.ts` wrapper is synthesized here.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from wasmhost.builds.runner import ToolchainFailureError, run_tool
from wasmhost.builds.wrappers import render_initialize_wrapper, write_wrapper
from wasmhost.types import BuildOutputs

if TYPE_CHECKING:
    from wasmhost.config import Settings

logger = logging.getLogger(__name__)

CXX_SUFFIXES = frozenset({".cpp"})

EXTRA_FLAGS = ("--emit-unicode=1",)


@dataclass(frozen=True)
class EmscriptenToolchain:
    """Fixed configuration of the Emscripten pipeline."""

    emcc: str = "emcc"
    empp: str = "em++"
    runtime: str = "deno"
    em_config: Path | None = None
    extra_flags: tuple[str, ...] = EXTRA_FLAGS
    timeout: int | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> EmscriptenToolchain:
        return cls(
            emcc=settings.emcc,
            empp=settings.empp,
            runtime=settings.runtime,
            em_config=settings.em_config,
            timeout=settings.build_timeout,
        )

    def compiler_for(self, source: Path) -> str:
        """Pick em++ for C++ sources and emcc otherwise."""
        if source.suffix in CXX_SUFFIXES:
            return self.empp
        return self.emcc

    def env(self) -> dict[str, str]:
        if self.em_config is None:
            return {}
        return {"EM_CONFIG": str(self.em_config)}


def compose_emcc_command(
    toolchain: EmscriptenToolchain,
    source: Path,
    loader: Path,
) -> list[str]:
    """Compose the Emscripten compile command.

    Args:
        toolchain: Toolchain configuration.
        source: C or C++ source file.
        loader: Output path of the JavaScript loader; the wasm binary is
            written next to it with the same stem.

    Returns:
        Command as list of strings suitable for subprocess.
    """
    return [
        toolchain.compiler_for(source),
        str(source),
        "-s",
        "WASM=1",
        "-s",
        f"ENVIRONMENT=web,worker,{toolchain.runtime}",
        "-s",
        "EXPORT_ES6=1",
        "-s",
        "USE_ES6_IMPORT_META=0",
        "-s",
        "MODULARIZE=1",
        *toolchain.extra_flags,
        "-o",
        str(loader),
    ]


def build_emscripten(
    source: Path,
    output_name: str,
    work_dir: Path,
    toolchain: EmscriptenToolchain,
    log_path: Path | None = None,
) -> BuildOutputs:
    """Compile a C/C++ source file to a wasm/js/ts triplet.

    Args:
        source: C or C++ source file.
        output_name: Logical output name (stem of all outputs).
        work_dir: Working area of this build.
        toolchain: Toolchain configuration.
        log_path: Build log to append tool output to.

    Returns:
        BuildOutputs inside `work_dir/out`.

    Raises:
        ToolchainFailureError: If the compiler fails or skips an output.
    """
    out_dir = work_dir / "out"
    out_dir.mkdir(parents=True, exist_ok=True)
    loader = out_dir / f"{output_name}.js"
    binary = out_dir / f"{output_name}.wasm"

    logger.info("Building C/C++ module %s from %s", output_name, source)
    run_tool(
        compose_emcc_command(toolchain, source.resolve(), loader),
        cwd=work_dir,
        log_path=log_path,
        env=toolchain.env(),
        timeout=toolchain.timeout,
    )

    for expected in (binary, loader):
        if not expected.is_file():
            raise ToolchainFailureError(
                f"{toolchain.compiler_for(source)} did not produce {expected.name}",
                code="toolchain_output_missing",
            )

    wrapper = write_wrapper(
        out_dir / f"{output_name}.ts",
        render_initialize_wrapper(loader.name),
    )
    return BuildOutputs(binary=binary, loader=loader, wrapper=wrapper)


__all__ = [
    "CXX_SUFFIXES",
    "EXTRA_FLAGS",
    "EmscriptenToolchain",
    "build_emscripten",
    "compose_emcc_command",
]
