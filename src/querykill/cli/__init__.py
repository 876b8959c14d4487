"""CLI entry point — Click group with global options."""

from __future__ import annotations

import logging

import click

from querykill import __version__


@click.group()
@click.version_option(version=__version__, prog_name="querykill")
@click.option("--verbose", "-v", is_flag=True, help="Log every executed action.")
@click.pass_context
def main(ctx: click.Context, verbose: bool) -> None:
    """querykill — find runaway database sessions and kill them."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _register_commands() -> None:
    from querykill.cli.stop import stop  # noqa: F811
    from querykill.cli.watch import watch  # noqa: F811

    main.add_command(watch)
    main.add_command(stop)


_register_commands()
