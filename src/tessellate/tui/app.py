"""Main Textual app for the tessellate TUI."""

import asyncio
import logging

from textual.app import App, ComposeResult
from textual.containers import Horizontal
from textual.widgets import DataTable, Footer, Header, Static

from tessellate.core import state as store
from tessellate.core.catalog import list_sessions
from tessellate.core.config import get_max_listed_sessions
from tessellate.core.errors import TessellateError
from tessellate.core.guard import delete_session
from tessellate.core.restore import restore_session
from tessellate.tui.widgets.session_tree import SessionDetail, SessionTable

logger = logging.getLogger(__name__)


class TessellateApp(App):
    """Tessellate session browser.

    Lists saved sessions with the pane tree of the highlighted one, and
    auto-refreshes when sessions or their locks change on disk.
    """

    TITLE = "tessellate"
    BINDINGS = [
        ("r", "restore_session", "Restore"),
        ("x", "delete_session", "Delete"),
        ("R", "refresh", "Refresh"),
        ("j", "cursor_down", "Down"),
        ("k", "cursor_up", "Up"),
        ("q", "quit", "Quit"),
    ]

    CSS = """
    #main {
        height: 1fr;
    }

    SessionTable {
        width: 3fr;
        height: 1fr;
    }

    SessionDetail {
        width: 2fr;
        height: 1fr;
        padding: 0 1;
        border-left: solid $primary;
    }

    #empty-message {
        width: 100%;
        height: 100%;
        content-align: center middle;
        color: $text-muted;
    }
    """

    def __init__(self) -> None:
        super().__init__()
        self._watcher_task: asyncio.Task | None = None

    def compose(self) -> ComposeResult:
        """Compose the app layout."""
        yield Header()
        with Horizontal(id="main"):
            yield SessionTable()
            yield SessionDetail()
        yield Static("No saved sessions", id="empty-message")
        yield Footer()

    def on_mount(self) -> None:
        """Called when the app is mounted."""
        self.refresh_sessions()
        self._watcher_task = asyncio.create_task(self._watch_sessions())

    async def on_unmount(self) -> None:
        """Called when the app is unmounted."""
        if self._watcher_task:
            self._watcher_task.cancel()
            try:
                await self._watcher_task
            except asyncio.CancelledError:
                pass

    def refresh_sessions(self) -> None:
        """Reload and display the session catalog."""
        table = self.query_one(SessionTable)
        main = self.query_one("#main", Horizontal)
        empty_msg = self.query_one("#empty-message", Static)

        try:
            infos = list_sessions(store.current_session_id(), get_max_listed_sessions())
        except TessellateError as e:
            self.notify(str(e), severity="error")
            return

        if infos:
            table.update_sessions(infos)
            main.display = True
            empty_msg.display = False
            active = sum(1 for info in infos if info.status != "exited")
            self.sub_title = f"{len(infos)} sessions, {active} open"
        else:
            table.update_sessions([])
            main.display = False
            empty_msg.display = True
            self.sub_title = "0 sessions"

        self.query_one(SessionDetail).show_session(table.selected_info())

    def on_data_table_row_highlighted(self, event: DataTable.RowHighlighted) -> None:
        """Show the tree of the highlighted session."""
        table = self.query_one(SessionTable)
        self.query_one(SessionDetail).show_session(table.selected_info())

    def action_refresh(self) -> None:
        self.refresh_sessions()

    def action_cursor_down(self) -> None:
        self.query_one(SessionTable).action_cursor_down()

    def action_cursor_up(self) -> None:
        self.query_one(SessionTable).action_cursor_up()

    def action_restore_session(self) -> None:
        """Restore the selected session in a new browser window."""
        info = self.query_one(SessionTable).selected_info()
        if info is None:
            self.notify("No session selected", severity="warning")
            return
        if info.is_current:
            self.notify("Session is already open in this window", severity="warning")
            return
        if info.is_active:
            self.notify("Session is already open in another window", severity="warning")
            return

        try:
            restore_session(info.id)
        except TessellateError as e:
            self.notify(str(e), severity="error")
            return
        self.notify(f"Restoring session {info.short_id}")

    def action_delete_session(self) -> None:
        """Delete the selected session. Open sessions are refused."""
        info = self.query_one(SessionTable).selected_info()
        if info is None:
            self.notify("No session selected", severity="warning")
            return

        try:
            delete_session(info.id, store.current_session_id())
        except TessellateError as e:
            self.notify(str(e), severity="error")
            return

        self.notify(f"Deleted session {info.short_id}")
        self.refresh_sessions()

    async def _watch_sessions(self) -> None:
        """Watch the sessions and locks directories for changes and refresh."""
        from watchfiles import awatch

        # Log files live in the data dir too; watching them would loop
        watched = [store.get_sessions_dir(), store.get_locks_dir()]
        for path in watched:
            path.mkdir(parents=True, exist_ok=True)

        try:
            async for _changes in awatch(*watched):
                self.refresh_sessions()
        except asyncio.CancelledError:
            pass
        except FileNotFoundError:
            # Directory was deleted, recreate and restart watching
            logger.debug("watched directory removed, restarting watcher")
            self.refresh_sessions()
            self._watcher_task = asyncio.create_task(self._watch_sessions())
