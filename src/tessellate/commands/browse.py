"""Browse command for tessellate.

Runs a headless browser host: owns one session, snapshots its state while
running and records the exit on SIGINT/SIGTERM. Restored sessions are
started through this command by the spawner.
"""

import logging
import signal
import threading

import click

from tessellate.core.errors import (
    SessionLockedError,
    SessionNotFoundError,
    StoreUnavailableError,
)
from tessellate.core.lifecycle import BrowserSession, start_browser_session
from tessellate.core.restore import find_last_restorable
from tessellate.core.session import is_valid_session_id

logger = logging.getLogger(__name__)

DEFAULT_SNAPSHOT_INTERVAL = 30.0


def wait_for_shutdown(browser: BrowserSession, interval: float) -> None:
    """Block until SIGINT or SIGTERM, snapshotting every interval seconds."""
    shutdown = threading.Event()

    def signal_handler(signum: int, _frame: object) -> None:
        logger.info("Received %s signal...", signal.Signals(signum).name)
        shutdown.set()

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    while not shutdown.wait(interval):
        browser.snapshot(browser.state)


@click.command()
@click.option(
    "--restore-session",
    "restore_session_id",
    default="",
    metavar="ID",
    help="Resume this session instead of starting a new one",
)
@click.option(
    "--restore-last",
    is_flag=True,
    help="Resume the most recent exited session that has tabs",
)
@click.option(
    "--snapshot-interval",
    type=float,
    default=DEFAULT_SNAPSHOT_INTERVAL,
    show_default=True,
    help="Seconds between state snapshots",
)
def browse(restore_session_id: str, restore_last: bool, snapshot_interval: float) -> None:
    """Run a browser host until interrupted.

    Without options a new session is started. The session ID is printed on
    start; stop the host with Ctrl-C.

    Examples:

        tessellate browse

        tessellate browse --restore-session 20251217_205106_a7b3
    """
    if restore_session_id and not is_valid_session_id(restore_session_id):
        click.echo(
            f"Error: '{restore_session_id}' is not a session ID\n"
            "  Cause: --restore-session takes a full ID such as 20251217_205106_a7b3.\n"
            "  Fix: Restore by short ID or suffix with:\n"
            f"    tessellate sessions restore {restore_session_id}",
            err=True,
        )
        raise SystemExit(1)

    if restore_last and not restore_session_id:
        found = find_last_restorable()
        if found is None:
            click.echo("No session to restore, starting a new one", err=True)
        else:
            restore_session_id = found[0]

    try:
        browser = start_browser_session(restore_session_id)
    except SessionNotFoundError:
        click.echo(
            f"Error: Session {restore_session_id} not found\n"
            f"  Fix: List available sessions:\n"
            f"    tessellate sessions list",
            err=True,
        )
        raise SystemExit(1)
    except SessionLockedError:
        click.echo(
            f"Error: Session {restore_session_id} is already open\n"
            f"  Cause: Another browser process owns it.",
            err=True,
        )
        raise SystemExit(1)
    except StoreUnavailableError as e:
        click.echo(f"Error: Cannot open the session store: {e.reason}", err=True)
        raise SystemExit(1)

    with browser:
        click.echo(
            f"Session {browser.id} ({len(browser.state.tabs)} tabs, "
            f"{browser.state.count_panes()} panes)"
        )
        wait_for_shutdown(browser, snapshot_interval)
