"""
Swarm Engine CLI

Command-line interface for inspecting swarms and driving their branch lifecycle.
"""

import sys
from pathlib import Path
from typing import NoReturn

import click
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from . import __version__
from .core.errors import SwarmError, SwarmGitError
from .core.manager import SwarmManager
from .core.models import OperationReport
from .utils.helpers import set_verbosity

console = Console()


def print_version(ctx, param, value):
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    console.print(f"Swarm Engine v{__version__}")
    ctx.exit()


def fail(title: str, error: Exception) -> NoReturn:
    """Print an error panel and exit with status 1."""
    console.print(Panel(
        f"❌ {escape(str(error))}",
        title=title,
        border_style="red"
    ))

    # Raw output is shown as-is; the reader decides what it means.
    if isinstance(error, SwarmGitError):
        if error.conflicting_files:
            console.print("Conflicting files:")
            for path in error.conflicting_files:
                console.print(f"  {path}")
        if error.stdout:
            console.print(f"stdout:\n{error.stdout}", markup=False)
        if error.stderr:
            console.print(f"stderr:\n{error.stderr}", markup=False)

    sys.exit(1)


def show_report(report: OperationReport, verbose: bool) -> None:
    """List best-effort steps that failed and were ignored."""
    ignored = report.ignored_failures
    if ignored:
        console.print(f"⚠️  {len(ignored)} best-effort step(s) failed and were ignored")
    if verbose:
        for outcome in report.steps:
            mark = "✓" if outcome.succeeded else "✗"
            detail = "" if outcome.succeeded else f": {outcome.error}"
            console.print(f"  {mark} {outcome.step}{detail}", markup=False)


def get_manager(ctx: click.Context) -> SwarmManager:
    if "manager" not in ctx.obj:
        ctx.obj["manager"] = SwarmManager.from_repo(ctx.obj["repo"])
    return ctx.obj["manager"]


@click.group()
@click.option(
    "--version",
    is_flag=True,
    expose_value=False,
    is_eager=True,
    callback=print_version,
    help="Show version and exit.",
)
@click.option(
    "--repo",
    "-r",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Repository root (defaults to the current directory).",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose output.",
)
@click.pass_context
def cli(ctx: click.Context, repo: Path, verbose: bool) -> None:
    """
    Swarm Engine - coordinate worker agents on a shared repository.

    Tracks the ready front of a swarm's task graph and manages its
    integration branch: create, merge worker branches, land, clean up.
    """
    ctx.ensure_object(dict)
    ctx.obj["repo"] = repo.resolve()
    ctx.obj["verbose"] = verbose
    set_verbosity(verbose)


@cli.command()
@click.argument("swarm_id")
@click.pass_context
def status(ctx: click.Context, swarm_id: str) -> None:
    """Show ready, blocked and completed tasks of a swarm."""
    try:
        manager = get_manager(ctx)
        swarm = manager.get_swarm(swarm_id)
        summary = manager.scheduler.summarize(swarm)
    except (SwarmError, ValueError) as e:
        fail("Error", e)

    console.print(Panel(
        f"Swarm: {swarm_id}\n"
        f"Integration branch: {swarm.integration_branch}\n"
        f"Target branch: {swarm.target_branch}",
        title="📊 Swarm Status",
        border_style="blue"
    ))

    table = Table()
    table.add_column("Task")
    table.add_column("Title")
    table.add_column("State")
    table.add_column("Waiting on")

    for task in swarm.tasks:
        if task.completed:
            state, waiting = "completed", ""
        elif task.task_id in summary.ready:
            state, waiting = "ready", ""
        else:
            state = "blocked"
            waiting = ", ".join(manager.scheduler.blockers(swarm, task.task_id))
        table.add_row(task.task_id, task.title, state, waiting)

    console.print(table)
    console.print(
        f"Progress: {len(summary.completed)}/{summary.total_tasks} complete "
        f"({summary.progress:.0f}%)"
    )


@cli.command()
@click.argument("swarm_id")
@click.pass_context
def ready(ctx: click.Context, swarm_id: str) -> None:
    """List the ready front of a swarm, one task id per line."""
    try:
        tasks = get_manager(ctx).get_ready_tasks(swarm_id)
    except (SwarmError, ValueError) as e:
        fail("Error", e)

    for task in tasks:
        click.echo(task.task_id)


@cli.command()
@click.argument("swarm_id")
@click.pass_context
def waves(ctx: click.Context, swarm_id: str) -> None:
    """Group a swarm's tasks by dependency depth."""
    try:
        summary = get_manager(ctx).get_status(swarm_id)
    except (SwarmError, ValueError) as e:
        fail("Error", e)

    for number, wave in enumerate(summary.waves, start=1):
        noun = "task" if len(wave) == 1 else "tasks"
        console.print(f"Wave {number}: {len(wave)} {noun} ({', '.join(wave)})")
    console.print(f"Max parallelism: {summary.max_parallelism}")


@cli.command()
@click.argument("swarm_id")
@click.pass_context
def create(ctx: click.Context, swarm_id: str) -> None:
    """Create the swarm's integration branch."""
    try:
        manager = get_manager(ctx)
        report = manager.create_integration_branch(swarm_id)
    except (SwarmError, ValueError) as e:
        fail("Create Failed", e)

    console.print(Panel(
        f"✅ Created {manager.get_integration_branch(swarm_id)}",
        title="Success",
        border_style="green"
    ))
    show_report(report, ctx.obj["verbose"])


@cli.command()
@click.argument("swarm_id")
@click.argument("worker_branch")
@click.pass_context
def merge(ctx: click.Context, swarm_id: str, worker_branch: str) -> None:
    """Merge a worker branch into the integration branch."""
    try:
        report = get_manager(ctx).merge_to_integration(swarm_id, worker_branch)
    except (SwarmError, ValueError) as e:
        fail("Merge Failed", e)

    console.print(Panel(
        f"✅ Merged {worker_branch}",
        title="Merge Complete",
        border_style="green"
    ))
    show_report(report, ctx.obj["verbose"])


@cli.command()
@click.argument("swarm_id")
@click.pass_context
def land(ctx: click.Context, swarm_id: str) -> None:
    """Merge the integration branch into the target branch and push."""
    try:
        manager = get_manager(ctx)
        report = manager.land_to_main(swarm_id)
        target = manager.get_swarm(swarm_id).target_branch
    except (SwarmError, ValueError) as e:
        fail("Landing Failed", e)

    console.print(Panel(
        f"🚀 Swarm '{swarm_id}' landed on {target}",
        title="Landed",
        border_style="green"
    ))
    show_report(report, ctx.obj["verbose"])


@cli.command()
@click.pass_context
def abort(ctx: click.Context) -> None:
    """Abort an in-progress merge."""
    try:
        get_manager(ctx).abort_merge()
    except SwarmError as e:
        fail("Abort Failed", e)

    console.print("Merge aborted.")


@cli.command()
@click.argument("swarm_id")
@click.option(
    "--force",
    is_flag=True,
    help="Delete branches without confirmation.",
)
@click.pass_context
def cleanup(ctx: click.Context, swarm_id: str, force: bool) -> None:
    """Delete the swarm's integration and worker branches."""
    if not force:
        console.print("⚠️  This will delete the integration branch and all worker branches.")
        if not click.confirm("Continue?"):
            console.print("Cleanup cancelled.")
            return

    try:
        report = get_manager(ctx).cleanup_branches(swarm_id)
    except (SwarmError, ValueError) as e:
        if getattr(e, "report", None) is not None:
            show_report(e.report, ctx.obj["verbose"])
        fail("Cleanup Failed", e)

    console.print(Panel(
        f"✅ Branches of swarm '{swarm_id}' cleaned up",
        title="Cleanup Complete",
        border_style="green"
    ))
    show_report(report, ctx.obj["verbose"])


@cli.command()
@click.argument("swarm_id")
@click.argument("worker")
@click.argument("task_id")
@click.pass_context
def branch(ctx: click.Context, swarm_id: str, worker: str, task_id: str) -> None:
    """Print the branch name a worker uses for a task."""
    try:
        name = get_manager(ctx).get_worker_branch(swarm_id, worker, task_id)
    except ValueError as e:
        fail("Error", e)

    click.echo(name)


def main() -> None:
    """Main entry point for the CLI."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n👋 Goodbye!")
        sys.exit(0)
    except Exception as e:
        console.print(Panel(
            f"❌ Unexpected error: {e}",
            title="Fatal Error",
            border_style="red"
        ))
        sys.exit(1)


if __name__ == "__main__":
    main()
