"""Sessions commands for tessellate.

List, inspect, restore, delete and clean up saved browser sessions.
"""

from typing import NoReturn

import click
import orjson

from tessellate.core import state as store
from tessellate.core.catalog import SessionInfo, list_sessions, relative_time
from tessellate.core.cleanup import cleanup_exited_sessions, end_stale_sessions
from tessellate.core.config import get_max_listed_sessions
from tessellate.core.errors import (
    AmbiguousSessionError,
    GuardViolationError,
    RestoreFailedError,
    SessionNotFoundError,
    SpawnFailedError,
    StoreUnavailableError,
)
from tessellate.core.guard import delete_session
from tessellate.core.resolve import resolve_session
from tessellate.core.restore import restore_session
from tessellate.core.workspace import render_tree

STATUS_GLYPHS = {"current": "●", "active": "○", "exited": " "}


def _fail(error: str, cause: str = "", fix: str = "") -> NoReturn:
    """Print an error in Error/Cause/Fix form and exit 1."""
    message = f"Error: {error}"
    if cause:
        message += f"\n  Cause: {cause}"
    if fix:
        message += f"\n  Fix: {fix}"
    click.echo(message, err=True)
    raise SystemExit(1)


def _resolve_or_exit(session_ref: str) -> SessionInfo:
    try:
        return resolve_session(session_ref, store.current_session_id())
    except SessionNotFoundError:
        _fail(
            f"Session '{session_ref}' not found",
            f"'{session_ref}' does not match any session ID, short ID or ID suffix.",
            "List available sessions:\n    tessellate sessions list",
        )
    except AmbiguousSessionError as e:
        _fail(
            f"Session '{session_ref}' is ambiguous",
            f"It matches {len(e.candidates)} sessions: {', '.join(e.session_ids)}",
            "Use more characters of the ID, or the full ID.",
        )
    except StoreUnavailableError as e:
        _fail("Cannot read the session store", e.reason)


def format_session_row(info: SessionInfo) -> str:
    """Format one line of `sessions list` output."""
    glyph = STATUS_GLYPHS[info.status]
    return (
        f"{glyph} {info.short_id:<6} {info.id:<22} "
        f"{info.tab_count:>4} {info.pane_count:>5}  {relative_time(info.updated_at)}"
    )


@click.group(invoke_without_command=True)
@click.pass_context
def sessions(ctx: click.Context) -> None:
    """Manage saved browser sessions.

    Running 'tessellate sessions' without a subcommand launches the TUI.
    """
    if ctx.invoked_subcommand is not None:
        return

    from tessellate.tui.app import TessellateApp

    TessellateApp().run()


@sessions.command("list")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@click.option(
    "--limit",
    "-n",
    type=int,
    default=None,
    help="Maximum sessions to show (default: max_listed_sessions setting)",
)
def list_command(as_json: bool, limit: int | None) -> None:
    """List saved sessions, most recently updated first.

    ● marks the session of this process, ○ a session open in another
    window. Other sessions have exited and can be restored or deleted.
    """
    if limit is None:
        limit = get_max_listed_sessions()

    try:
        infos = list_sessions(store.current_session_id(), limit)
    except StoreUnavailableError as e:
        _fail("Cannot read the session store", e.reason)

    if as_json:
        click.echo(orjson.dumps([info.to_dict() for info in infos]).decode())
        return

    if not infos:
        click.echo("No saved sessions")
        return

    click.echo(f"  {'SHORT':<6} {'ID':<22} {'TABS':>4} {'PANES':>5}  UPDATED")
    for info in infos:
        click.echo(format_session_row(info))


@sessions.command()
@click.argument("session_ref")
def show(session_ref: str) -> None:
    """Show a session's tabs and pane layout.

    SESSION_REF is a full session ID, its short ID or a unique ID suffix.
    """
    info = _resolve_or_exit(session_ref)

    click.echo(f"Session {info.id} ({info.status})")
    click.echo(f"  Started: {info.session.started_at.isoformat()}")
    if info.session.ended_at is not None:
        click.echo(f"  Ended:   {info.session.ended_at.isoformat()}")
    click.echo(f"  Updated: {relative_time(info.updated_at)}")
    click.echo(f"  Tabs: {info.tab_count}  Panes: {info.pane_count}")

    if info.state is None:
        click.echo("\n(no saved state)")
        return

    click.echo("")
    for line in render_tree(info.state):
        click.echo(line)


@sessions.command()
@click.argument("session_ref")
def restore(session_ref: str) -> None:
    """Restore a session in a new browser window.

    The new window resumes the session under the same ID. Sessions that are
    already open cannot be restored.

    SESSION_REF is a full session ID, its short ID or a unique ID suffix.

    Examples:

        tessellate sessions restore a7b3

        tessellate sessions restore 20251217_205106_a7b3
    """
    info = _resolve_or_exit(session_ref)

    if info.is_current:
        _fail(
            f"Session {info.id} is the current session",
            fix="It is already open in this window.",
        )
    if info.is_active:
        _fail(
            f"Session {info.id} is already open in another window",
            fix="Switch to that window instead.",
        )

    try:
        pid = restore_session(info.id)
    except RestoreFailedError as e:
        _fail(
            f"Cannot restore session {info.id}",
            e.reason,
            f"Inspect it with:\n    tessellate sessions show {info.short_id}",
        )
    except SpawnFailedError as e:
        _fail(f"Cannot start a browser for session {info.id}", e.reason)

    click.echo(f"Restored session {info.id} (pid {pid})")


@sessions.command()
@click.argument("session_ref")
@click.option("--yes", "-y", is_flag=True, help="Don't ask for confirmation")
def delete(session_ref: str, yes: bool) -> None:
    """Permanently delete an exited session.

    Sessions that are open in this or another window cannot be deleted.

    SESSION_REF is a full session ID, its short ID or a unique ID suffix.
    """
    info = _resolve_or_exit(session_ref)

    if not yes:
        click.confirm(
            f"Delete session {info.id} ({info.tab_count} tabs, {info.pane_count} panes)?",
            abort=True,
        )

    try:
        delete_session(info.id, store.current_session_id())
    except GuardViolationError as e:
        _fail(
            f"Cannot delete session {info.id}",
            e.reason,
            "Close the window that owns it first.",
        )
    except SessionNotFoundError:
        _fail(f"Session {info.id} not found", "It was deleted concurrently.")
    except StoreUnavailableError as e:
        _fail(f"Cannot delete session {info.id}", e.reason)

    click.echo(f"Deleted session {info.id}")


@sessions.command()
@click.option("--max-exited", type=int, default=None, help="Exited sessions to keep")
@click.option(
    "--max-age-days",
    type=int,
    default=None,
    help="Delete exited sessions older than this (0 disables)",
)
def cleanup(max_exited: int | None, max_age_days: int | None) -> None:
    """End crashed sessions and prune old exited ones.

    Limits default to the max_exited_sessions and
    max_exited_session_age_days settings.
    """
    try:
        ended = end_stale_sessions()
        report = cleanup_exited_sessions(
            max_exited=max_exited,
            max_age_days=max_age_days,
            current_session_id=store.current_session_id(),
        )
    except StoreUnavailableError as e:
        _fail("Cannot read the session store", e.reason)

    click.echo(f"Ended {len(ended)} stale sessions")
    click.echo(
        f"Deleted {report.total_deleted} exited sessions "
        f"({len(report.deleted_by_age)} by age, {len(report.deleted_by_count)} by count)"
    )
    for error in report.errors:
        click.echo(f"Warning: {error}", err=True)
