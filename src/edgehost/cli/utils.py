"""
CLI utility helpers — consoles, error output, and option parsing.
"""

from __future__ import annotations

import typer
from rich.console import Console

from edgehost.core.errors import EdgeError

console = Console()
err_console = Console(stderr=True)


def fail(error: EdgeError | Exception) -> typer.Exit:
    """Print ``error`` to stderr and return the exit to raise."""
    if isinstance(error, EdgeError):
        err_console.print(f"[bold red]Error[/bold red] ({error.category.value}): {error.message}")
    else:
        err_console.print(f"[bold red]Error[/bold red]: {error}")
    return typer.Exit(code=1)


def parse_env_pairs(pairs: list[str] | None) -> dict[str, str]:
    """Turn ``KEY=VALUE`` options into a dict; later keys win."""
    env: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise typer.BadParameter(f"Expected KEY=VALUE, got {pair!r}", param_hint="--env")
        env[key] = value
    return env
