"""
Root Typer application for the edgehost CLI.

Commands:
    install   Download (if needed) and print the runtime binary path
    serve     Bundle the functions in a manifest and run them locally
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from typer import Typer

from edgehost.cli.utils import console, err_console, fail, parse_env_pairs
from edgehost.config.manifest import load
from edgehost.core.errors import EdgeError
from edgehost.core.logging import configure_logging
from edgehost.core.settings import get_settings
from edgehost.runtime.manager import BinaryManager
from edgehost.server.serve import serve as prepare_server

app = Typer(
    name="edgehost",
    help="edgehost — run edge functions locally against a sandboxed runtime.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        from edgehost import __version__

        typer.echo(f"edgehost {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool | None = typer.Option(  # noqa: UP007
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """edgehost CLI — manage the runtime binary and serve functions."""


# ── Commands ─────────────────────────────────────────────────────────────


@app.command("install")
def install(
    cache_dir: Path | None = typer.Option(None, "--cache-dir", help="Binary cache directory"),
    version_range: str | None = typer.Option(None, "--range", help="Semantic version range"),
) -> None:
    """Ensure the runtime binary is installed and print its path."""
    configure_logging(level=get_settings().log_level)
    manager = BinaryManager(cache_dir=cache_dir, version_range=version_range)

    try:
        path = asyncio.run(manager.ensure_binary())
    except EdgeError as exc:
        raise fail(exc) from exc

    console.print(str(path), soft_wrap=True, markup=False, highlight=False)


@app.command("serve")
def serve(
    manifest: Path = typer.Argument(..., help="Functions manifest (JSON)"),
    port: int | None = typer.Option(None, "--port", "-p", help="Port the runtime listens on"),
    debug: bool = typer.Option(False, "--debug", help="Verbose runtime and log output"),
    env: list[str] | None = typer.Option(None, "--env", "-e", help="KEY=VALUE visible to functions"),
) -> None:
    """Bundle the functions in MANIFEST and serve them until interrupted."""
    settings = get_settings()
    configure_logging(level="DEBUG" if debug else settings.log_level)
    variables = parse_env_pairs(env)

    try:
        functions = load(manifest)
    except EdgeError as exc:
        raise fail(exc) from exc

    if not functions.declarations:
        err_console.print(f"[yellow]No functions declared in {manifest}[/yellow]")
        raise typer.Exit(code=1)

    import_maps = [functions.import_map] if functions.import_map else []

    try:
        asyncio.run(_serve(functions.declarations, import_maps, variables, port, debug, manifest.resolve().parent))
    except KeyboardInterrupt:
        console.print("[dim]Stopped.[/dim]")
    except EdgeError as exc:
        raise fail(exc) from exc


async def _serve(declarations, import_maps, env, port, debug, base_path) -> None:
    supervisor = await prepare_server(port=port, base_path=base_path, debug=debug, import_maps=import_maps)

    async with supervisor:
        result = await supervisor.start_isolate(declarations, env)
        if not result.success:
            err_console.print("[bold red]Runtime exited before it was ready[/bold red]")
            raise typer.Exit(code=1)

        names = ", ".join(declaration.name for declaration in declarations)
        console.print(
            f"[bold green]Serving[/bold green] {names} on http://{supervisor.host}:{supervisor.port}"
        )
        await supervisor.process.wait()
