"""Developer CLI for building and launching the MarkovAI client/server project."""

from __future__ import annotations

import logging
import shlex
from collections.abc import Sequence
from pathlib import Path

import click
import structlog
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.text import Text

from buildkit import config
from buildkit.config import BuildSettings, load_settings
from buildkit.datapath import (
    CacheDatabaseError,
    clear_chain,
    resolve_cache_db,
    summarize_cache,
)
from buildkit.errors import BuildFailedError, BuildkitError
from buildkit.flags import (
    FORWARDED_FLAGS,
    PropertySyntaxError,
    forward_properties,
    parse_property_assignments,
    rejected_properties,
)
from buildkit.graph import Task, TaskGraph
from buildkit.process import get_process_runner
from buildkit.project import build_project
from buildkit.types import BuildResult, TaskContext, TaskStatus

_STATUS_STYLES: dict[TaskStatus, str] = {
    TaskStatus.EXECUTED: "green",
    TaskStatus.UP_TO_DATE: "cyan",
    TaskStatus.FAILED: "red",
    TaskStatus.NOT_RUN: "yellow",
    TaskStatus.SKIPPED: "yellow",
}

_property_option = click.option(
    "-D",
    "--property",
    "properties",
    multiple=True,
    metavar="NAME=VALUE",
    help="Invoker property; allow-listed names are forwarded to bootRun.",
)


def _configure_logging(verbose: bool) -> None:
    level = logging.INFO if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    structlog.configure(wrapper_class=structlog.make_filtering_bound_logger(level))


def _parse_properties(assignments: Sequence[str]) -> dict[str, str]:
    try:
        return parse_property_assignments(assignments)
    except PropertySyntaxError as exc:
        raise click.BadParameter(str(exc), param_hint="-D/--property") from exc


def _settings(ctx: click.Context) -> BuildSettings:
    return ctx.ensure_object(dict)["settings"]


def _graph(ctx: click.Context) -> TaskGraph:
    state = ctx.ensure_object(dict)
    if "graph" not in state:
        state["graph"] = build_project(state["settings"])
    return state["graph"]


def _render_tasks_table(tasks: Sequence[Task], *, title: str) -> Table:
    table = Table(title=title)
    table.add_column("Step", justify="right", style="cyan", no_wrap=True)
    table.add_column("Task", style="magenta")
    table.add_column("Group", style="white")
    table.add_column("Depends on", style="white")
    table.add_column("Description", style="green")
    for index, task in enumerate(tasks, start=1):
        table.add_row(
            str(index),
            task.name,
            task.group,
            ", ".join(task.depends_on) or "-",
            task.description,
        )
    return table


def _render_result_table(result: BuildResult) -> Table:
    table = Table(title="Build plan (dry-run)" if result.dry_run else "Build results")
    table.add_column("Task", style="magenta")
    table.add_column("Status", style="cyan")
    table.add_column("Duration", style="green", justify="right")
    for outcome in result.outcomes:
        label = outcome.status.value
        if outcome.returncode is not None:
            label = f"{label} ({outcome.returncode})"
        duration = (
            f"{outcome.duration:.1f}s"
            if outcome.status in (TaskStatus.EXECUTED, TaskStatus.FAILED)
            else "-"
        )
        table.add_row(
            outcome.name, Text(label, style=_STATUS_STYLES[outcome.status]), duration
        )
    return table


@click.group(help="Build, launch and verify the MarkovAI client/server project.")
@click.option(
    "--project-root",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Root holding client/ and server/ (defaults to BUILDKIT_PROJECT_ROOT or cwd).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log task events at INFO level.")
@click.pass_context
def cli(ctx: click.Context, project_root: Path | None, verbose: bool) -> None:
    """Load settings for the selected project root."""

    _configure_logging(verbose)
    ctx.ensure_object(dict)["settings"] = load_settings(project_root=project_root)


@cli.command("tasks")
@click.pass_context
def tasks_command(ctx: click.Context) -> None:
    """List registered tasks."""

    graph = _graph(ctx)
    Console().print(_render_tasks_table(graph.tasks, title="Registered tasks"))


@cli.command("plan")
@click.argument("task_names", nargs=-1, required=True)
@click.option(
    "-x", "--exclude-task", "excluded", multiple=True, help="Task to leave out."
)
@click.pass_context
def plan_command(
    ctx: click.Context, task_names: tuple[str, ...], excluded: tuple[str, ...]
) -> None:
    """Display the execution order without running anything."""

    graph = _graph(ctx)
    try:
        plan = graph.plan(task_names, exclude=excluded)
    except BuildkitError as exc:
        raise click.ClickException(str(exc)) from exc
    Console().print(_render_tasks_table(plan, title="Execution plan"))


@cli.command("run")
@click.argument("task_names", nargs=-1, required=True)
@_property_option
@click.option(
    "--args",
    "app_args",
    default=None,
    help="Arguments for the launched application (bootRun, precompute).",
)
@click.option(
    "-x", "--exclude-task", "excluded", multiple=True, help="Task to leave out."
)
@click.option(
    "--rerun-tasks", is_flag=True, help="Ignore up-to-date checks and run every task."
)
@click.option("--dry-run", is_flag=True, help="Show the plan without executing it.")
@click.pass_context
def run_command(
    ctx: click.Context,
    task_names: tuple[str, ...],
    properties: tuple[str, ...],
    app_args: str | None,
    excluded: tuple[str, ...],
    rerun_tasks: bool,
    dry_run: bool,
) -> None:
    """Execute tasks and their dependencies, aborting on the first failure."""

    console = Console()
    graph = _graph(ctx)
    context = TaskContext(
        settings=_settings(ctx),
        runner=get_process_runner(),
        properties=_parse_properties(properties),
        app_args=tuple(shlex.split(app_args)) if app_args else (),
    )
    try:
        result = graph.execute(
            task_names,
            context,
            exclude=excluded,
            rerun=rerun_tasks,
            dry_run=dry_run,
        )
    except BuildFailedError as exc:
        console.print(_render_result_table(exc.result))
        console.print(Text.assemble(("BUILD FAILED", "red"), " ", str(exc)))
        raise SystemExit(exc.exit_code) from exc
    except BuildkitError as exc:
        raise click.ClickException(str(exc)) from exc

    console.print(_render_result_table(result))
    if not dry_run:
        console.print(Text("BUILD SUCCESSFUL", style="green"))


@cli.command("flags")
@_property_option
def flags_command(properties: tuple[str, ...]) -> None:
    """Show which properties bootRun would forward to the application."""

    parsed = _parse_properties(properties)
    forwarded = forward_properties(parsed)
    console = Console()
    table = Table(title="Forwarded flags")
    table.add_column("Flag", style="magenta")
    table.add_column("Value", style="green")
    for name in FORWARDED_FLAGS:
        if name in forwarded:
            table.add_row(name, forwarded[name])
        else:
            table.add_row(name, Text("(not set)", style="dim"))
    console.print(table)
    ignored = rejected_properties(parsed)
    if ignored:
        console.print(
            Text.assemble(("Not forwarded", "yellow"), ": ", ", ".join(ignored))
        )
    console.print(f"Max heap: {config.MAX_HEAP}")


@cli.command("dependencies")
@click.pass_context
def dependencies_command(ctx: click.Context) -> None:
    """List declared backend dependency coordinates."""

    settings = _settings(ctx)
    table = Table(title=f"{settings.group}:server:{settings.version}")
    table.add_column("Configuration", style="cyan")
    table.add_column("Coordinate", style="white")
    for declaration in config.DEPENDENCIES:
        table.add_row(declaration.configuration, declaration.coordinate)
    console = Console()
    console.print(table)
    plugins = ", ".join(f"{k} {v}" for k, v in config.PLUGIN_VERSIONS.items())
    console.print(f"Plugins: {plugins}")
    console.print(f"Repository: {config.MAVEN_REPOSITORY}")


@cli.group(help="Inspect and prune the Markov result cache database.")
def cache() -> None:
    """Namespace for cache helpers."""


@cache.command("info")
@_property_option
@click.pass_context
def cache_info(ctx: click.Context, properties: tuple[str, ...]) -> None:
    """Report cached row counts per chain type and version."""

    db_path = resolve_cache_db(_settings(ctx), _parse_properties(properties))
    try:
        summaries = summarize_cache(db_path)
    except CacheDatabaseError as exc:
        raise click.ClickException(str(exc)) from exc
    table = Table(title=f"Cache {db_path}")
    table.add_column("Chain type", style="magenta")
    table.add_column("Version", style="white")
    table.add_column("Rows", style="green", justify="right")
    for summary in summaries:
        table.add_row(summary.chain_type, summary.chain_version, str(summary.rows))
    Console().print(table)


@cache.command("clear-chain")
@click.argument("chain_type")
@click.argument("chain_version")
@_property_option
@click.pass_context
def cache_clear_chain(
    ctx: click.Context,
    chain_type: str,
    chain_version: str,
    properties: tuple[str, ...],
) -> None:
    """Delete cached results for one chain type and version."""

    db_path = resolve_cache_db(_settings(ctx), _parse_properties(properties))
    try:
        removed = clear_chain(db_path, chain_type, chain_version)
    except CacheDatabaseError as exc:
        raise click.ClickException(str(exc)) from exc
    Console().print(
        Text.assemble(
            ("Cleared", "green"), f" {removed} rows for {chain_type}/{chain_version}"
        )
    )


def main() -> None:  # pragma: no cover - console script entry point
    cli(obj={})


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    main()
