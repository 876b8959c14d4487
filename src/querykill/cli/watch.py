"""CLI command: querykill watch — poll sessions and act on matches."""

from __future__ import annotations

import signal
import sys
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from querykill.actions.dispatcher import ActionDispatcher
from querykill.config import QueryKillConfig
from querykill.process.supervisor import ProcessSupervisor
from querykill.rules.loader import load_rules, merge, rules_from_options
from querykill.rules.matcher import MatchEngine
from querykill.rules.models import Attribute, RuleSet
from querykill.runtime.context import RunContext
from querykill.runtime.daemon import DaemonError, DaemonLifecycle
from querykill.runtime.scheduler import PollScheduler
from querykill.source.base import SessionSource, SourceError
from querykill.source.postgres import PostgresSource
from querykill.source.snapshot import SnapshotFileSource

console = Console(stderr=True)

_FILTER_ATTRIBUTES = (
    Attribute.COMMAND,
    Attribute.INFO,
    Attribute.USER,
    Attribute.HOST,
    Attribute.DB,
    Attribute.STATE,
)

_FilePath = click.Path(dir_okay=False, path_type=Path)


def _filter_options(func):
    """Add --match-<attr> and --ignore-<attr> regex options."""
    for attr in reversed(_FILTER_ATTRIBUTES):
        func = click.option(
            f"--ignore-{attr.value}",
            metavar="REGEX",
            help=f"Never act on sessions whose {attr.value} matches REGEX.",
        )(func)
        func = click.option(
            f"--match-{attr.value}",
            metavar="REGEX",
            help=f"Only act on sessions whose {attr.value} matches REGEX.",
        )(func)
    return func


@click.command()
@click.option("--dsn", help="libpq connection string for the server to watch.")
@click.option(
    "--test-matching",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Match against a YAML snapshot file instead of a live server.",
)
@click.option(
    "--rules",
    "rules_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML file with match rules.",
)
@_filter_options
@click.option(
    "--busy-time",
    type=click.IntRange(min=0),
    help="Match sessions in their current state for at least N seconds.",
)
@click.option(
    "--match-all",
    is_flag=True,
    help="Match every session not excluded by an ignore rule.",
)
@click.option("--kill", "terminate", is_flag=True, help="Terminate matching sessions.")
@click.option(
    "--kill-query",
    "terminate_query",
    is_flag=True,
    help="Cancel only the running query of matching sessions.",
)
@click.option(
    "--print", "print_matches", is_flag=True, help="Print a KILL line for each match."
)
@click.option(
    "--execute-command",
    metavar="TEMPLATE",
    help="Run TEMPLATE through the shell for each match. Placeholders: "
    "{id} {user} {host} {db} {command} {time} {state} {info}.",
)
@click.option(
    "--interval",
    type=click.FloatRange(min=0, min_open=True),
    help="Seconds between polls [default: 30].",
)
@click.option(
    "--run-time", type=click.FloatRange(min=0), help="Stop after this many seconds."
)
@click.option("--daemonize", is_flag=True, help="Detach and run in the background.")
@click.option("--pid", "pid_file", type=_FilePath, help="PID file (daemon mode).")
@click.option(
    "--log", "log_file", type=_FilePath, help="Log file, appended to (daemon mode)."
)
@click.option("--sentinel", type=_FilePath, help="Stop when this file exists.")
@click.option(
    "--drain-timeout",
    type=click.FloatRange(min=0),
    help="Seconds to wait for running commands at shutdown [default: 5].",
)
@click.pass_context
def watch(ctx: click.Context, **options: object) -> None:
    """Poll live sessions and kill, print or run a command for matches."""
    config = _build_config(ctx, options)
    if not config.has_action:
        raise click.UsageError(
            "Specify at least one of --kill, --kill-query, --print or --execute-command"
        )

    try:
        engine = MatchEngine(config.rule_set)
    except ValueError as e:
        raise click.UsageError(str(e)) from e

    if config.rule_set.is_empty:
        console.print(
            "[yellow]No match rules given (ignore rules alone select nothing); "
            "nothing will be matched.[/yellow]"
        )

    source = _make_source(options.get("test_matching"), config.dsn)
    try:
        source.open()
    except SourceError as e:
        raise click.ClickException(str(e)) from e

    console.print(
        f"[bold]querykill[/bold] watching with {len(config.rule_set.rules)} rule(s), "
        f"interval {config.interval:g}s"
    )

    def body() -> None:
        _run(config, source, engine)

    lifecycle = DaemonLifecycle(config)
    try:
        code = lifecycle.run(body, before_detach=source.close)
    except DaemonError as e:
        raise click.ClickException(str(e)) from e
    finally:
        source.close()

    if code:
        sys.exit(code)


def _run(config: QueryKillConfig, source: SessionSource, engine: MatchEngine) -> None:
    context = RunContext(config=config)
    supervisor = ProcessSupervisor(context)
    dispatcher = ActionDispatcher(context, source, supervisor)
    scheduler = PollScheduler(context, source, engine, dispatcher, supervisor)

    if config.daemonize:
        scheduler.run()
    else:

        def _signal_handler(signum: int, frame: object) -> None:
            console.print("\n[dim]Stopping...[/dim]")
            scheduler.stop()

        previous = signal.signal(signal.SIGINT, _signal_handler)
        try:
            scheduler.run()
        finally:
            signal.signal(signal.SIGINT, previous)

    _print_summary(context)


def _build_config(ctx: click.Context, options: dict) -> QueryKillConfig:
    extra = rules_from_options(
        match=[(a, options[f"match_{a.value}"]) for a in _FILTER_ATTRIBUTES],
        ignore=[(a, options[f"ignore_{a.value}"]) for a in _FILTER_ATTRIBUTES],
        busy_time=options["busy_time"],
    )
    try:
        rule_set = RuleSet()
        if options["rules_path"]:
            rule_set = load_rules(options["rules_path"])
        return QueryKillConfig.load(
            interval=options["interval"],
            run_time=options["run_time"],
            rule_set=merge(rule_set, extra, match_all=options["match_all"]),
            terminate=options["terminate"],
            terminate_query=options["terminate_query"],
            execute_command=options["execute_command"],
            print_matches=options["print_matches"],
            verbose=ctx.obj.get("verbose", False),
            daemonize=options["daemonize"],
            pid_file=_absolute(options["pid_file"]),
            log_file=_absolute(options["log_file"]),
            sentinel=_absolute(options["sentinel"]),
            drain_timeout=options["drain_timeout"],
            dsn=options["dsn"],
        )
    except ValueError as e:
        raise click.UsageError(str(e)) from e


def _absolute(path: Path | None) -> Path | None:
    return path.absolute() if path is not None else None


def _make_source(test_matching: Path | None, dsn: str) -> SessionSource:
    if test_matching is not None:
        return SnapshotFileSource(test_matching)
    if not dsn:
        raise click.UsageError("Specify --dsn (or QUERYKILL_DSN) or --test-matching")
    return PostgresSource(dsn)


def _print_summary(context: RunContext) -> None:
    stats = context.stats

    console.print("\n[bold]Run Summary[/bold]")
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column(style="dim")
    table.add_column()

    table.add_row("Stopped", context.stop_reason)
    table.add_row("Ticks", str(stats.ticks))
    table.add_row("Fetch errors", str(stats.fetch_errors))
    table.add_row("Matches", str(stats.matches))
    table.add_row("Actions ok", str(stats.actions_ok))
    table.add_row("Actions failed", str(stats.actions_failed))
    table.add_row("Commands run", f"{stats.completed}/{stats.spawned}")
    table.add_row("Spawn failures", str(stats.spawn_failures))
    table.add_row("Commands unfinished", str(stats.unfinished))
    console.print(table)
