"""TypeScript wrapper synthesis.

Both pipelines publish a `<name>.ts` entry point next to the loader. Neither
toolchain writes one in the shape we publish, so it is generated here.
"""

from __future__ import annotations

from pathlib import Path

REEXPORT_TEMPLATE = """\
// Entry point for {loader}: re-exports the generated bindings.
export * from "./{loader}";
"""

INITIALIZE_TEMPLATE = """\
import createModule from "./{loader}";

export async function initialize() {{
    const instance = await createModule();
    return instance;
}}
"""


def render_reexport_wrapper(loader_filename: str) -> str:
    """Render a wrapper that re-exports every binding of the loader."""
    return REEXPORT_TEMPLATE.format(loader=loader_filename)


def render_initialize_wrapper(loader_filename: str) -> str:
    """Render a wrapper exposing `initialize()` over a modularized loader."""
    return INITIALIZE_TEMPLATE.format(loader=loader_filename)


def write_wrapper(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


__all__ = [
    "INITIALIZE_TEMPLATE",
    "REEXPORT_TEMPLATE",
    "render_initialize_wrapper",
    "render_reexport_wrapper",
    "write_wrapper",
]
