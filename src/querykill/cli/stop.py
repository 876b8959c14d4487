"""CLI command: querykill stop — create the sentinel file."""

from __future__ import annotations

from pathlib import Path

import click
from rich.console import Console

from querykill.config import QueryKillConfig

console = Console(stderr=True)


@click.command()
@click.option(
    "--sentinel",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Sentinel file to create (default: the watch default).",
)
def stop(sentinel: Path | None) -> None:
    """Ask running watchers to stop after their current tick."""
    try:
        path = QueryKillConfig.load(sentinel=sentinel).sentinel
    except ValueError as e:
        raise click.UsageError(str(e)) from e
    try:
        path.touch()
    except OSError as e:
        raise click.ClickException(f"Cannot create sentinel file {path}: {e}") from e
    console.print(f"Created sentinel file [cyan]{path}[/cyan]")
