"""Rust to WebAssembly adapter (cargo + wasm-bindgen).

This module handles:
- Scaffolding a throwaway cdylib crate around a single source file
- Compiling it for wasm32-unknown-unknown with a fixed release profile
- Running wasm-bindgen for the host runtime
- Normalizing the bindgen outputs into the wasm/js/ts triplet
"""

from __future__ import annotations

import logging
import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from wasmhost.builds.runner import ToolchainFailureError, run_tool
from wasmhost.builds.wrappers import render_reexport_wrapper, write_wrapper
from wasmhost.types import BuildOutputs

if TYPE_CHECKING:
    from wasmhost.config import Settings

logger = logging.getLogger(__name__)

WASM_TARGET = "wasm32-unknown-unknown"

RUSTFLAGS = (
    "-C",
    "link-arg=-s",
    "-C",
    "opt-level=3",
    "-C",
    "target-feature=+bulk-memory,+mutable-globals,+reference-types,+simd128",
)

CARGO_TOML_TEMPLATE = """\
[package]
name = "{crate}"
version = "0.1.0"
edition = "2021"

[lib]
crate-type = ["cdylib"]
path = "src/lib.rs"

[dependencies]
wasm-bindgen = "0.2"
js-sys = "0.3"
web-sys = {{ version = "0.3", features = ["console"] }}

[profile.release]
opt-level = 3
lto = true
codegen-units = 1

[workspace]
"""

CARGO_CONFIG_TEMPLATE = """\
[build]
target = "{target}"

[target.{target}]
rustflags = [{rustflags}]
"""


@dataclass(frozen=True)
class RustToolchain:
    """Fixed configuration of the cargo/wasm-bindgen pipeline."""

    cargo: str = "cargo"
    wasm_bindgen: str = "wasm-bindgen"
    runtime: str = "deno"
    target: str = WASM_TARGET
    rustflags: tuple[str, ...] = RUSTFLAGS
    timeout: int | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> RustToolchain:
        return cls(
            cargo=settings.cargo,
            wasm_bindgen=settings.wasm_bindgen,
            runtime=settings.runtime,
            timeout=settings.build_timeout,
        )


def crate_name_for(output_name: str) -> str:
    """Derive a valid crate name from an output name.

    Args:
        output_name: Logical output name.

    Returns:
        Crate name made of ASCII letters, digits and underscores, starting
        with a letter.
    """
    crate = re.sub(r"[^A-Za-z0-9_]", "_", output_name)
    if not crate[:1].isalpha():
        crate = f"wasm_{crate}"
    return crate


def render_cargo_toml(crate: str) -> str:
    return CARGO_TOML_TEMPLATE.format(crate=crate)


def render_cargo_config(toolchain: RustToolchain) -> str:
    rustflags = ", ".join(f'"{flag}"' for flag in toolchain.rustflags)
    return CARGO_CONFIG_TEMPLATE.format(target=toolchain.target, rustflags=rustflags)


def scaffold_crate(
    crate_dir: Path,
    source: Path,
    crate: str,
    toolchain: RustToolchain,
) -> Path:
    """Materialize a cdylib crate whose lib.rs is the given source.

    Args:
        crate_dir: Directory to create the crate in.
        source: Rust source file.
        crate: Crate name.
        toolchain: Toolchain configuration.

    Returns:
        Path to the crate directory.
    """
    (crate_dir / "src").mkdir(parents=True)
    (crate_dir / ".cargo").mkdir()
    shutil.copyfile(source, crate_dir / "src" / "lib.rs")
    (crate_dir / "Cargo.toml").write_text(render_cargo_toml(crate), encoding="utf-8")
    (crate_dir / ".cargo" / "config.toml").write_text(
        render_cargo_config(toolchain), encoding="utf-8"
    )
    logger.debug("Scaffolded crate %s in %s", crate, crate_dir)
    return crate_dir


def compose_cargo_command(toolchain: RustToolchain) -> list[str]:
    return [toolchain.cargo, "build", "--target", toolchain.target, "--release"]


def compose_bindgen_command(
    toolchain: RustToolchain,
    compiled: Path,
    out_dir: Path,
    output_name: str,
) -> list[str]:
    return [
        toolchain.wasm_bindgen,
        "--target",
        toolchain.runtime,
        "--out-dir",
        str(out_dir),
        "--out-name",
        output_name,
        str(compiled),
    ]


def normalize_bindgen_outputs(out_dir: Path, output_name: str) -> BuildOutputs:
    """Rename wasm-bindgen outputs to the shared-stem triplet.

    wasm-bindgen writes `<name>_bg.wasm` and a `<name>.js` loader that refers
    to it. The binary is renamed to `<name>.wasm`, the loader is rewritten to
    match, and a `<name>.ts` wrapper re-exporting the bindings is added.

    Raises:
        ToolchainFailureError: If wasm-bindgen did not produce its outputs.
    """
    bg_binary = out_dir / f"{output_name}_bg.wasm"
    loader = out_dir / f"{output_name}.js"
    for expected in (bg_binary, loader):
        if not expected.is_file():
            raise ToolchainFailureError(
                f"wasm-bindgen did not produce {expected.name}",
                code="toolchain_output_missing",
            )

    binary = bg_binary.rename(out_dir / f"{output_name}.wasm")
    loader_source = loader.read_text(encoding="utf-8")
    loader.write_text(
        loader_source.replace(bg_binary.name, binary.name),
        encoding="utf-8",
    )
    wrapper = write_wrapper(
        out_dir / f"{output_name}.ts",
        render_reexport_wrapper(loader.name),
    )
    return BuildOutputs(binary=binary, loader=loader, wrapper=wrapper)


def build_rust(
    source: Path,
    output_name: str,
    work_dir: Path,
    toolchain: RustToolchain,
    log_path: Path | None = None,
) -> BuildOutputs:
    """Compile a Rust source file to a wasm/js/ts triplet.

    The crate scaffold lives in `work_dir/crate` and is deleted once the
    outputs have been extracted, whether or not the build succeeded.

    Args:
        source: Rust source file.
        output_name: Logical output name (stem of all outputs).
        work_dir: Working area of this build.
        toolchain: Toolchain configuration.
        log_path: Build log to append tool output to.

    Returns:
        BuildOutputs inside `work_dir/out`.

    Raises:
        ToolchainFailureError: If cargo or wasm-bindgen fails.
    """
    crate = crate_name_for(output_name)
    crate_dir = work_dir / "crate"
    out_dir = work_dir / "out"
    out_dir.mkdir(parents=True, exist_ok=True)

    logger.info("Building Rust module %s from %s", output_name, source)
    try:
        scaffold_crate(crate_dir, source, crate, toolchain)
        run_tool(
            compose_cargo_command(toolchain),
            cwd=crate_dir,
            log_path=log_path,
            timeout=toolchain.timeout,
        )

        compiled = crate_dir / "target" / toolchain.target / "release" / f"{crate}.wasm"
        if not compiled.is_file():
            raise ToolchainFailureError(
                f"cargo did not produce {compiled.name}",
                code="toolchain_output_missing",
            )

        run_tool(
            compose_bindgen_command(toolchain, compiled, out_dir, output_name),
            cwd=crate_dir,
            log_path=log_path,
            timeout=toolchain.timeout,
        )
    finally:
        shutil.rmtree(crate_dir, ignore_errors=True)

    return normalize_bindgen_outputs(out_dir, output_name)


__all__ = [
    "RUSTFLAGS",
    "WASM_TARGET",
    "RustToolchain",
    "build_rust",
    "compose_bindgen_command",
    "compose_cargo_command",
    "crate_name_for",
    "normalize_bindgen_outputs",
    "render_cargo_config",
    "render_cargo_toml",
    "scaffold_crate",
]
