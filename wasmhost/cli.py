"""Thin CLI wrapper for wasmhost.

This module provides the command-line interface using Typer.
All business logic is delegated to core modules.
"""

import logging
from dataclasses import asdict
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from wasmhost import __version__
from wasmhost.config import Settings, get_settings, print_settings_json

app = typer.Typer(
    name="wasmhost",
    help="wasmhost - build WebAssembly modules and serve them over HTTP",
    no_args_is_help=True,
)
console = Console()
err_console = Console(stderr=True)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"wasmhost version {__version__}")
        raise typer.Exit()


def configure_logging(level: str) -> None:
    """Route log records to stderr through Rich."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def load_settings(json_output: bool = False) -> Settings:
    """Load settings, exiting with code 1 on invalid WASMHOST_* values."""
    try:
        return get_settings()
    except ValidationError as e:
        message = f"Invalid configuration: {e}"
        if json_output:
            console.print_json(
                data={
                    "success": False,
                    "error": {"code": "invalid_config", "message": message},
                }
            )
        else:
            err_console.print("[red]Invalid configuration:[/red]")
            err_console.print(str(e), markup=False, highlight=False)
        raise typer.Exit(code=1) from None


@app.callback()
def main(
    version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            "-V",
            help="Show version and exit",
            callback=version_callback,
            is_eager=True,
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Enable debug logging"),
    ] = False,
) -> None:
    """wasmhost - build WebAssembly modules and serve them over HTTP."""
    if verbose:
        level = "DEBUG"
    else:
        try:
            level = get_settings().log_level
        except ValidationError:
            # The command reports the invalid configuration itself
            level = "INFO"
    configure_logging(level)


@app.command()
def config(
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Show effective configuration."""
    settings = load_settings(json_output)
    if json_output:
        console.print_json(print_settings_json(settings))
        return

    timeout_display = (
        f"{settings.build_timeout}s" if settings.build_timeout else "(none)"
    )
    em_config_display = str(settings.em_config) if settings.em_config else "(default)"
    console.print("[bold]Effective Configuration:[/bold]")
    console.print()
    console.print("[bold]Paths:[/bold]")
    console.print(f"  Store directory:     {settings.store_dir}")
    console.print(f"  Scratch directory:   {settings.scratch_dir}")
    console.print(f"  Log directory:       {settings.log_dir}")
    console.print()
    console.print("[bold]Server:[/bold]")
    console.print(f"  Listen address:      {settings.host}:{settings.port}")
    console.print(f"  Log level:           {settings.log_level}")
    console.print()
    console.print("[bold]Builds:[/bold]")
    console.print(f"  Build timeout:       {timeout_display}")
    console.print(f"  Lock builds:         {settings.lock_builds}")
    console.print()
    console.print("[bold]Toolchains:[/bold]")
    console.print(f"  Host runtime:        {settings.runtime}")
    console.print(f"  cargo:               {settings.cargo}")
    console.print(f"  wasm-bindgen:        {settings.wasm_bindgen}")
    console.print(f"  emcc:                {settings.emcc}")
    console.print(f"  em++:                {settings.empp}")
    console.print(f"  Emscripten config:   {em_config_display}")


@app.command()
def build(
    source: Annotated[str, typer.Argument(help="Source file (.rs, .c, .cpp)")],
    output_name: Annotated[
        str, typer.Argument(help="Logical name of the published artifacts")
    ],
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """Build a source file and publish its .wasm, .js and .ts artifacts."""
    from wasmhost.builds.runner import BuildError, ToolchainFailureError
    from wasmhost.builds.service import build as run_build

    settings = load_settings(json_output)

    try:
        result = run_build(source, output_name, settings=settings)
    except BuildError as e:
        if json_output:
            error: dict[str, Any] = {"code": e.code, "message": str(e)}
            if isinstance(e, ToolchainFailureError):
                error["exit_code"] = e.exit_code
                error["command"] = e.command
                error["stderr"] = e.stderr
            console.print_json(data={"success": False, "error": error})
        else:
            err_console.print(f"[red]Build failed ({e.code}): {e}[/red]")
            if isinstance(e, ToolchainFailureError) and e.stderr:
                err_console.print(e.stderr, markup=False, highlight=False)
        raise typer.Exit(code=1) from None

    if json_output:
        console.print_json(
            data={
                "success": True,
                "output_name": result.output_name,
                "source_kind": result.source_kind.value,
                "log_path": str(result.log_path) if result.log_path else None,
                "artifacts": [
                    {**asdict(a), "filename": a.filename} for a in result.artifacts
                ],
            }
        )
        return

    console.print(
        f"[green]Built {result.output_name}[/green] ({result.source_kind.value})"
    )
    for artifact in result.artifacts:
        console.print(
            f"  {artifact.filename}  {artifact.size_bytes} bytes  "
            f"sha256:{(artifact.sha256 or '')[:16]}"
        )


@app.command()
def serve(
    host: Annotated[
        str | None,
        typer.Option("--host", help="Bind address"),
    ] = None,
    port: Annotated[
        int | None,
        typer.Option("--port", "-p", help="Listen port"),
    ] = None,
) -> None:
    """Serve the artifact store over HTTP."""
    from web.app import serve as run_server

    settings = load_settings()
    overrides: dict[str, Any] = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if overrides:
        settings = settings.model_copy(update=overrides)

    console.print(
        f"[blue]Serving {settings.store_dir} on "
        f"http://{settings.host}:{settings.port}[/blue]"
    )
    run_server(settings)


@app.command("list")
def list_artifacts(
    show_all: Annotated[
        bool,
        typer.Option("--all", "-a", help="Include loaders and wrappers"),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", help="Output as JSON"),
    ] = False,
) -> None:
    """List artifacts in the store."""
    from wasmhost.builds.service import get_store
    from wasmhost.store import StoreError
    from wasmhost.types import BINARY_EXTENSION

    store = get_store(load_settings(json_output))
    try:
        artifacts = store.list(None if show_all else BINARY_EXTENSION)
    except StoreError as e:
        err_console.print(f"[red]Cannot read store: {e}[/red]")
        raise typer.Exit(code=1) from None

    if json_output:
        console.print_json(
            data=[{**asdict(a), "filename": a.filename} for a in artifacts]
        )
        return

    if not artifacts:
        console.print("[yellow]No artifacts found[/yellow]")
        return

    console.print(f"[bold]Found {len(artifacts)} artifact(s):[/bold]")
    for artifact in artifacts:
        console.print(f"  [green]{artifact.filename}[/green]  {artifact.size_bytes} bytes")


if __name__ == "__main__":
    app()
