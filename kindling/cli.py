"""Kindling CLI — install, update, unlock and uninstall components."""

from pathlib import Path

import click
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from kindling import __version__
from kindling.errors import InvalidRequirementError, KindlingError
from kindling.logging import setup_logging
from kindling.project import HookPolicy, HostProject
from kindling.requirement import SUPPORTED_FORMATS, parse_requirement
from kindling.sync.changeset import ApplyOutcome
from kindling.sync.lifecycle import Lifecycle, OperationResult
from kindling.sync.lock import LockStore

console = Console()


@click.group()
@click.version_option(version=__version__)
@click.option("--project", "-p", default=".", help="Root of the host project")
@click.option("--log-level", default=None, help="Override KINDLING_LOG_LEVEL")
@click.pass_context
def main(ctx: click.Context, project: str, log_level: str | None):
    """Kindling — install reusable source components into your project.

    Components are copied into the project, moved under its package, and
    tracked in a lock file so they can be updated later.
    """
    setup_logging(log_level)
    ctx.obj = Path(project)


def _open(ctx: click.Context, continue_on_hook_error: bool = False) -> tuple[Lifecycle, LockStore]:
    host = HostProject.load(ctx.obj)
    lock = LockStore.load(host.root, host.lock_path)
    lifecycle = Lifecycle(
        host,
        confirm=lambda message: click.confirm(message, default=False),
        console=console,
        hook_policy=HookPolicy.CONTINUE if continue_on_hook_error else None,
    )
    return lifecycle, lock


def _fail(e: KindlingError) -> None:
    console.print(f"[red]{escape(str(e))}[/]")
    raise click.exceptions.Exit(1)


def _report(result: OperationResult) -> None:
    for hook in result.failed_hooks:
        console.print(f"  [yellow]![/] {hook.label} hook failed: {hook.error}")
    if result.dependencies:
        console.print(f"  [dim]Installed dependencies: {', '.join(result.dependencies)}[/]")
    if result.outcome == ApplyOutcome.ABORTED:
        raise click.exceptions.Exit(1)


# ── Install ──────────────────────────────────────────────────────────


@main.command()
@click.argument("requirement")
@click.option("--yes", "-y", is_flag=True, help="Apply without asking for confirmation")
@click.option("--unlocked", is_flag=True, help="Import the files without tracking them")
@click.option("--continue-on-hook-error", is_flag=True, help="Skip failing hooks instead of aborting")
@click.pass_context
def install(ctx: click.Context, requirement: str, yes: bool, unlocked: bool, continue_on_hook_error: bool):
    """Install a component into the project.

    REQUIREMENT is one of:

    \b
      name@path:<path>
      name@git:<url>[@ref:<ref>|@branch:<branch>|@tag:<tag>]
      name@github:<org>/<repo>[@ref:<ref>|@branch:<branch>|@tag:<tag>]
    """
    try:
        req = parse_requirement(requirement)
        if req.origin is None:
            raise InvalidRequirementError(
                f"{requirement!r} has no origin. Supported formats: " + ", ".join(SUPPORTED_FORMATS)
            )
        lifecycle, lock = _open(ctx, continue_on_hook_error)
        console.print(f"\n[bold blue]Kindling[/] — Installing {req.name} from {req.origin.describe()}\n")
        result = lifecycle.install(lock, req.name, req.origin, unlocked=unlocked, yes=yes)
        _report(result)
    except KindlingError as e:
        _fail(e)


# ── Update ───────────────────────────────────────────────────────────


@main.command()
@click.argument("requirement")
@click.option("--yes", "-y", is_flag=True, help="Apply without asking for confirmation")
@click.option("--continue-on-hook-error", is_flag=True, help="Skip failing hooks instead of aborting")
@click.pass_context
def update(ctx: click.Context, requirement: str, yes: bool, continue_on_hook_error: bool):
    """Update an installed component.

    Pass just the NAME to update from the recorded origin, or a full
    requirement to switch origins.
    """
    try:
        req = parse_requirement(requirement)
        lifecycle, lock = _open(ctx, continue_on_hook_error)
        console.print(f"\n[bold blue]Kindling[/] — Updating {req.name}\n")
        result = lifecycle.update(lock, req.name, req.origin, yes=yes)
        _report(result)
    except KindlingError as e:
        _fail(e)


# ── Unlock / Uninstall ───────────────────────────────────────────────


@main.command()
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Apply without asking for confirmation")
@click.pass_context
def unlock(ctx: click.Context, name: str, yes: bool):
    """Stop syncing a component; its files become regular project code."""
    try:
        lifecycle, lock = _open(ctx)
        result = lifecycle.unlock(lock, name, yes=yes)
        _report(result)
    except KindlingError as e:
        _fail(e)


@main.command()
@click.argument("name")
@click.option("--yes", "-y", is_flag=True, help="Apply without asking for confirmation")
@click.pass_context
def uninstall(ctx: click.Context, name: str, yes: bool):
    """Remove a component's tracked files from the project."""
    try:
        lifecycle, lock = _open(ctx)
        result = lifecycle.uninstall(lock, name, yes=yes)
        _report(result)
    except KindlingError as e:
        _fail(e)


# ── Status ───────────────────────────────────────────────────────────


@main.command()
@click.pass_context
def status(ctx: click.Context):
    """List the components recorded in the lock file."""
    try:
        host = HostProject.load(ctx.obj)
        lock = LockStore.load(host.root, host.lock_path)
    except KindlingError as e:
        _fail(e)

    if not lock.names():
        console.print("[yellow]No components installed.[/]")
        return

    table = Table(title=f"Installed Components ({len(lock.names())})")
    table.add_column("Name", style="cyan")
    table.add_column("Version", justify="right", style="green")
    table.add_column("Files", justify="right")
    table.add_column("Origin")

    for name in lock.names():
        record = lock.get(name)
        table.add_row(name, str(record.version), str(len(record.files)), record.origin.describe())

    console.print(table)
