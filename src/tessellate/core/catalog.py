"""Session catalog for tessellate.

Builds the user-facing session list: store records merged with liveness,
per-session tab/pane counts and current/active/exited classification.
Listing is a pure read; nothing here writes to the store.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from tessellate.core import state as store
from tessellate.core.errors import CorruptStateError, SchemaMissingError
from tessellate.core.session import Session, SessionType
from tessellate.core.workspace import SessionState

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50


@dataclass(frozen=True)
class SessionInfo:
    """Read-only summary of one session, computed on demand.

    Attributes:
        session: The session record
        state: Its latest snapshot, or None if there is none
        tab_count: Number of tabs in the snapshot
        pane_count: Number of leaf panes across all tabs
        is_current: The session is owned by the process asking
        is_active: Another live process owns the session
        updated_at: When the snapshot was saved, else when the session started
    """

    session: Session
    state: SessionState | None
    tab_count: int
    pane_count: int
    is_current: bool
    is_active: bool
    updated_at: datetime

    @property
    def id(self) -> str:
        return self.session.id

    @property
    def short_id(self) -> str:
        return self.session.short_id

    @property
    def status(self) -> str:
        if self.is_current:
            return "current"
        if self.is_active:
            return "active"
        return "exited"

    def to_dict(self) -> dict:
        """Convert to a JSON-ready dict for `sessions list --json`."""
        return {
            "id": self.session.id,
            "short_id": self.short_id,
            "type": self.session.type.value,
            "status": self.status,
            "started_at": self.session.started_at.isoformat(),
            "ended_at": (
                self.session.ended_at.isoformat() if self.session.ended_at else None
            ),
            "updated_at": self.updated_at.isoformat(),
            "tab_count": self.tab_count,
            "pane_count": self.pane_count,
            "is_current": self.is_current,
            "is_active": self.is_active,
        }


def build_session_info(
    session: Session,
    state: SessionState | None,
    current_session_id: str,
    live: bool,
) -> SessionInfo:
    """Project a session record and its state into a SessionInfo."""
    is_current = bool(current_session_id) and session.id == current_session_id
    updated_at = session.started_at
    if state is not None and state.saved_at is not None:
        updated_at = state.saved_at
    return SessionInfo(
        session=session,
        state=state,
        tab_count=len(state.tabs) if state is not None else 0,
        pane_count=state.count_panes() if state is not None else 0,
        is_current=is_current,
        is_active=live and not is_current,
        updated_at=updated_at,
    )


def _load_state_for_listing(session_id: str) -> SessionState | None:
    try:
        return store.load_state(session_id)
    except CorruptStateError as e:
        logger.warning("listing session %s without state: %s", session_id, e.reason)
        return None


def list_sessions(current_session_id: str = "", limit: int = 0) -> list[SessionInfo]:
    """List browser sessions, most recently updated first.

    Args:
        current_session_id: ID of the session owned by the caller, or "" when
            the caller is not a browser host (e.g., a one-shot CLI command).
        limit: Maximum entries to return. 0 or less means DEFAULT_LIST_LIMIT.

    Returns:
        Up to limit SessionInfo entries sorted by updated_at descending. A
        store that has never held a session yields an empty list.

    Raises:
        StoreUnavailableError: If the store cannot be read.
    """
    if limit <= 0:
        limit = DEFAULT_LIST_LIMIT

    try:
        sessions = store.load_all()
    except SchemaMissingError:
        logger.debug("session store not initialized; no sessions to list")
        return []

    infos = []
    for session in sessions:
        if session.type != SessionType.BROWSER:
            continue
        state = _load_state_for_listing(session.id)
        live = store.is_live(session.id)
        infos.append(build_session_info(session, state, current_session_id, live))

    infos.sort(key=lambda info: (_sort_time(info.updated_at), info.session.id), reverse=True)
    return infos[:limit]


def get_session_info(session_id: str, current_session_id: str = "") -> SessionInfo | None:
    """Build a fresh SessionInfo for one session.

    Returns:
        The projection, or None if the session doesn't exist.

    Raises:
        StoreUnavailableError: If the store cannot be read.
    """
    session = store.load_session(session_id)
    if session is None:
        return None
    state = _load_state_for_listing(session_id)
    live = store.is_live(session_id)
    return build_session_info(session, state, current_session_id, live)


def _sort_time(ts: datetime) -> datetime:
    # Naive timestamps from older snapshots are treated as UTC
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def relative_time(ts: datetime, now: datetime | None = None) -> str:
    """Human-readable age of a timestamp ("just now", "5m ago", "2d ago")."""
    if now is None:
        now = datetime.now(timezone.utc)
    seconds = (_sort_time(now) - _sort_time(ts)).total_seconds()

    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds // 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds // 3600)}h ago"
    if seconds < 7 * 86400:
        return f"{int(seconds // 86400)}d ago"
    return f"{int(seconds // (7 * 86400))}w ago"
