"""Session list and detail widgets for the tessellate TUI."""

from textual.widgets import DataTable, Static

from tessellate.core.catalog import SessionInfo, relative_time
from tessellate.core.workspace import render_tree

STATUS_LABELS = {"current": "● current", "active": "○ active", "exited": "exited"}


class SessionTable(DataTable):
    """DataTable widget listing saved sessions.

    Columns: ID, Status, Tabs, Panes, Updated
    Rows are keyed by full session ID, in catalog order.
    """

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._infos: list[SessionInfo] = []

    def on_mount(self) -> None:
        """Set up the table columns on mount."""
        self.add_columns("ID", "Status", "Tabs", "Panes", "Updated")
        self.cursor_type = "row"

    def update_sessions(self, infos: list[SessionInfo]) -> None:
        """Replace the table contents, keeping the cursor on the same session."""
        selected = self.selected_info()
        self._infos = infos
        self.clear()

        for info in infos:
            self.add_row(
                info.short_id,
                STATUS_LABELS[info.status],
                str(info.tab_count),
                str(info.pane_count),
                relative_time(info.updated_at),
                key=info.id,
            )

        if selected is not None:
            for row, info in enumerate(infos):
                if info.id == selected.id:
                    self.move_cursor(row=row)
                    break

    def selected_info(self) -> SessionInfo | None:
        """The session under the cursor, or None if the table is empty."""
        row = self.cursor_row
        if row is None or not 0 <= row < len(self._infos):
            return None
        return self._infos[row]


class SessionDetail(Static):
    """Rendered tab and pane tree of one session."""

    def show_session(self, info: SessionInfo | None) -> None:
        if info is None:
            self.update("")
            return

        lines = [
            f"{info.id}  ({info.status})",
            f"{info.tab_count} tabs, {info.pane_count} panes, "
            f"updated {relative_time(info.updated_at)}",
            "",
        ]
        if info.state is None:
            lines.append("(no saved state)")
        else:
            lines.extend(render_tree(info.state))
        self.update("\n".join(lines))
