"""CLI entry point for claude-session.

Invoked as::

    claude-session [OPTIONS] COMMAND [ARGS]...

or, during development::

    python -m claude_session.cli.main

Commands
--------
- start     — Create a session from the current directory and launch the agent
- list, ls  — List sessions
- attach    — Resume the agent in an existing session
- shell     — Open a bash shell in a session
- logs      — Show a session's container log
- clone     — Copy a session's workspace into a new session
- delete, rm — Delete a session and its database
- cleanup   — Delete every stopped session
- upgrade   — Recreate a session from the current image, keeping its files
- help      — Show usage
- version   — Show version information
"""
from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from claude_session.config import Settings, load_settings
from claude_session.errors import (
    ClaudeSessionError,
    PartialFailure,
    SessionNotFoundError,
    UserDeclined,
)
from claude_session.manager import SessionManager, SessionResult
from claude_session.runtime.base import (
    ResourceNotFoundError,
    RuntimeOperationError,
    RuntimeUnavailableError,
)
from claude_session.session.metadata import SessionRecord

console = Console()

_SOURCE_WIDTH = 40

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_logging(verbose: bool) -> None:
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger = logging.getLogger("claude_session")
    logger.handlers[:] = [handler]
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


def _confirm(prompt: str) -> bool:
    return click.confirm(prompt, default=False)


def _confirm_copy(prompt: str) -> bool:
    return click.confirm(prompt, default=True)


def _manager(ctx: click.Context) -> SessionManager:
    """Build a ``SessionManager`` from the context object.

    Tests inject ``runtime``, ``git`` and ``owner`` through ``obj``; otherwise
    a ``DockerRuntime`` is created on first use.
    """
    from claude_session.runtime.docker import DockerRuntime

    obj = ctx.obj
    settings: Settings = obj["settings"]
    if obj.get("runtime") is None:
        obj["runtime"] = DockerRuntime(docker_binary=settings.docker_binary)
    return SessionManager(
        obj["runtime"],
        settings,
        git=obj.get("git"),
        database=obj.get("database"),
        confirm=_confirm,
        owner=obj.get("owner"),
    )


def _truncate_source(source: str) -> str:
    if len(source) <= _SOURCE_WIDTH:
        return source
    return "..." + source[-(_SOURCE_WIDTH - 3):]


def _session_table(records: list[SessionRecord]) -> Table:
    table = Table(title="Claude Sessions", show_lines=False)
    table.add_column("NAME", style="cyan", no_wrap=True)
    table.add_column("STATUS")
    table.add_column("SOURCE")
    table.add_column("BRANCH", style="green")
    table.add_column("CREATED")
    for record in records:
        metadata = record.metadata
        table.add_row(
            record.display_name,
            record.state.value,
            _truncate_source(metadata.source_dir),
            metadata.branch or "-",
            metadata.created_at.strftime("%Y-%m-%d %H:%M"),
        )
    return table


def _print_sessions(manager: SessionManager) -> None:
    records = manager.list_sessions()
    if not records:
        console.print("[yellow]No sessions found.[/yellow]")
        return
    console.print(_session_table(records))


def _print_failures(failures: list[PartialFailure]) -> None:
    for failure in failures:
        console.print(f"[yellow]Warning:[/yellow] {failure}")


def _print_error(exc: ClaudeSessionError) -> None:
    console.print(f"[red]Error:[/red] {exc.message}")
    for line in exc.remediation:
        console.print(f"  {line}")


def _print_summary(result: SessionResult) -> None:
    metadata = result.metadata
    console.print(f"  Source:    {metadata.source_dir}")
    if metadata.is_git:
        console.print(f"  Branch:    {metadata.branch}")
    console.print(f"  Workdir:   {result.workdir}")
    if result.database is not None:
        console.print(f"  Database:  {result.database.url}")
        if result.database_ready is False:
            console.print("[yellow]Warning:[/yellow] database is still starting up")
    _print_failures(result.failures)


@contextmanager
def _reporting(manager: SessionManager | None = None) -> Iterator[None]:
    """Turn package errors into messages and exit codes."""
    try:
        yield
    except UserDeclined:
        console.print("Cancelled")
        sys.exit(0)
    except SessionNotFoundError as exc:
        _print_error(exc)
        if manager is not None:
            console.print("\nAvailable sessions:")
            _print_sessions(manager)
        sys.exit(1)
    except ClaudeSessionError as exc:
        _print_error(exc)
        sys.exit(1)
    except RuntimeUnavailableError as exc:
        console.print(f"[red]Error:[/red] Docker is not running ({exc})")
        sys.exit(1)
    except (ResourceNotFoundError, RuntimeOperationError) as exc:
        console.print(f"[red]Error:[/red] {exc}")
        sys.exit(1)


def _exit_with(code: int | None) -> None:
    if code:
        sys.exit(code)


# ---------------------------------------------------------------------------
# Root group
# ---------------------------------------------------------------------------


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(dir_okay=False, path_type=Path),
    help="Settings file (defaults to ~/.config/claude-container/sessions.yaml).",
)
@click.option("-v", "--verbose", is_flag=True, help="Log every step.")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """Run an AI coding agent in an isolated container per session."""
    ctx.ensure_object(dict)
    _configure_logging(verbose)
    if ctx.obj.get("settings") is None:
        with _reporting():
            ctx.obj["settings"] = load_settings(config_path)


# ---------------------------------------------------------------------------
# version / help
# ---------------------------------------------------------------------------


@cli.command(name="version")
def version_command() -> None:
    """Show version information."""
    from claude_session import __version__

    console.print(f"[bold]claude-session[/bold] v{__version__}")


@cli.command(name="help")
@click.pass_context
def help_command(ctx: click.Context) -> None:
    """Show usage."""
    click.echo(ctx.parent.get_help() if ctx.parent else ctx.get_help())


# ---------------------------------------------------------------------------
# start
# ---------------------------------------------------------------------------


@cli.command(name="start")
@click.argument("name", required=False)
@click.option("--branch", "-b", default=None, help="Branch for the worktree (git sources only).")
@click.option("--no-worktree", is_flag=True, help="Work in the raw copy instead of a worktree.")
@click.option(
    "--exclude",
    "-e",
    default="",
    help="Comma-separated paths or globs to remove from the copy.",
)
@click.option(
    "--db/--no-db",
    "with_database",
    default=None,
    help="Attach a companion PostgreSQL database.",
)
@click.option("--detach", "-d", is_flag=True, help="Create the session without launching the agent.")
@click.option(
    "--source",
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory to copy (defaults to the current directory).",
)
@click.pass_context
def start_command(
    ctx: click.Context,
    name: str | None,
    branch: str | None,
    no_worktree: bool,
    exclude: str,
    with_database: bool | None,
    detach: bool,
    source: Path | None,
) -> None:
    """Create a session named NAME from the current directory."""
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions()
        manager.ensure_credentials(copy_prompt=_confirm_copy)
        result = manager.start(
            name,
            source_dir=source,
            branch=branch,
            skip_worktree=no_worktree,
            exclude=[p for p in exclude.split(",") if p.strip()],
            with_database=with_database,
            launch=False,
        )
        console.print(f"[green]Session created:[/green] {result.metadata.display_name}")
        _print_summary(result)
        if detach:
            console.print(
                f"Attach with: claude-session attach {result.metadata.display_name}"
            )
            return
        console.print("Launching agent...")
        code = manager.launch_agent(result.metadata, result.workdir)
    _exit_with(code)


# ---------------------------------------------------------------------------
# list
# ---------------------------------------------------------------------------


@cli.command(name="list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """List all sessions."""
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions(require_image=False)
        _print_sessions(manager)


cli.add_command(list_command, name="ls")


# ---------------------------------------------------------------------------
# attach / shell / logs
# ---------------------------------------------------------------------------


@cli.command(name="attach")
@click.argument("name", required=False)
@click.pass_context
def attach_command(ctx: click.Context, name: str | None) -> None:
    """Resume the agent in session NAME."""
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions(require_image=False)
        if not name:
            console.print("[red]Error:[/red] Please specify a session name")
            console.print("\nAvailable sessions:")
            _print_sessions(manager)
            sys.exit(1)
        result = manager.prepare_attach(name)
        console.print(f"Attaching to: {result.metadata.display_name}")
        console.print(f"Working directory: {result.workdir}")
        _print_failures(result.failures)
        code = manager.launch_agent(result.metadata, result.workdir)
    _exit_with(code)


@cli.command(name="shell")
@click.argument("name")
@click.pass_context
def shell_command(ctx: click.Context, name: str) -> None:
    """Open a bash shell in session NAME."""
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions(require_image=False)
        result = manager.prepare_attach(name, with_database=False)
        console.print(f"Opening shell in: {result.metadata.display_name} ({result.workdir})")
        code = manager.launch_shell(result.metadata, result.workdir)
    _exit_with(code)


@cli.command(
    name="logs",
    context_settings={"ignore_unknown_options": True, "allow_extra_args": True},
)
@click.argument("name")
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def logs_command(ctx: click.Context, name: str, args: tuple[str, ...]) -> None:
    """Show the container log of session NAME.

    Extra ARGS (for example ``-f`` or ``--tail 50``) are passed to ``docker logs``.
    """
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions(require_image=False)
        code = manager.logs(name, args)
    _exit_with(code)


# ---------------------------------------------------------------------------
# clone
# ---------------------------------------------------------------------------


@cli.command(name="clone")
@click.argument("source")
@click.argument("new_name", required=False)
@click.option("--branch", "-b", default=None, help="Branch for the clone's worktree.")
@click.pass_context
def clone_command(
    ctx: click.Context,
    source: str,
    new_name: str | None,
    branch: str | None,
) -> None:
    """Copy session SOURCE into a new session NEW_NAME."""
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions()
        manager.ensure_credentials(copy_prompt=_confirm_copy)
        result = manager.clone(source, new_name, branch=branch)
        console.print(f"[green]Session cloned:[/green] {result.metadata.display_name}")
        console.print(f"  Parent:    {result.metadata.parent_session_id}")
        _print_summary(result)
        console.print(f"Attach with: claude-session attach {result.metadata.display_name}")


# ---------------------------------------------------------------------------
# delete / cleanup
# ---------------------------------------------------------------------------


@cli.command(name="delete")
@click.argument("name")
@click.option("--force", "-f", is_flag=True, help="Delete without asking for confirmation.")
@click.pass_context
def delete_command(ctx: click.Context, name: str, force: bool) -> None:
    """Delete session NAME together with its database and network."""
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions(require_image=False)
        record = manager.get(name)
        console.print(f"Session:  {record.display_name}")
        console.print(f"Source:   {record.metadata.source_dir}")
        console.print(f"Created:  {record.metadata.created_at.strftime('%Y-%m-%d %H:%M')}")
        report = manager.delete(name, force=force)
        _print_failures(report.failures)
        console.print(f"[green]Deleted:[/green] {record.display_name}")


cli.add_command(delete_command, name="rm")


@cli.command(name="cleanup")
@click.pass_context
def cleanup_command(ctx: click.Context) -> None:
    """Delete every stopped session."""
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions(require_image=False)
        stopped = manager.stopped_sessions()
        if not stopped:
            console.print("No stopped sessions to clean up.")
            return
        console.print("Stopped sessions:")
        for record in stopped:
            console.print(f"  {record.display_name}")
        report = manager.cleanup()
        _print_failures(report.failures)
        console.print(f"[green]Removed {len(report.removed)} session(s).[/green]")
        if report.failures:
            sys.exit(1)


# ---------------------------------------------------------------------------
# upgrade
# ---------------------------------------------------------------------------


@cli.command(name="upgrade")
@click.argument("name")
@click.pass_context
def upgrade_command(ctx: click.Context, name: str) -> None:
    """Recreate session NAME from the current image, keeping its files."""
    manager = _manager(ctx)
    with _reporting(manager):
        manager.check_preconditions()
        result = manager.upgrade(name)
        console.print(f"[green]Session upgraded:[/green] {result.metadata.display_name}")
        _print_summary(result)


if __name__ == "__main__":
    cli()
