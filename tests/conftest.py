"""Shared pytest fixtures for tessellate tests."""

from datetime import datetime, timedelta, timezone

import pytest

from tessellate.core.session import Session, SessionType
from tessellate.core.state import ensure_store, save_session, save_state
from tessellate.core.workspace import (
    Container,
    Leaf,
    PaneSnapshot,
    SessionState,
    TabSnapshot,
    WorkspaceSnapshot,
)

BASE_TIME = datetime(2025, 12, 17, 20, 0, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    """Keep CLI invocations from installing log handlers during tests."""
    monkeypatch.setattr("tessellate.logging_setup._configured", True)


@pytest.fixture
def data_dir(tmp_path, monkeypatch):
    """Point the tessellate data directory at tmp_path for test isolation.

    This ensures tests don't write to the real ~/.tessellate/ directory.
    Also clears TESSELLATE_SESSION_ID to prevent parent session pollution.
    """
    monkeypatch.setenv("TESSELLATE_HOME", str(tmp_path))
    monkeypatch.delenv("TESSELLATE_SESSION_ID", raising=False)
    monkeypatch.delenv("TESSELLATE_LOG_LEVEL", raising=False)
    return tmp_path


def leaf(uri: str = "https://example.com", title: str = "") -> Leaf:
    return Leaf(pane=PaneSnapshot(uri=uri, title=title))


def split(*children, ratio: float = 0.5) -> Container:
    return Container(children=children, split_ratio=ratio)


def stack(*children) -> Container:
    return Container(children=children, is_stacked=True)


def make_state(session_id: str, *roots, saved_at: datetime | None = None) -> SessionState:
    """Build a state with one tab per given root."""
    return SessionState(
        session_id=session_id,
        tabs=[
            TabSnapshot(name=f"Tab {i + 1}", workspace=WorkspaceSnapshot(root=root), position=i)
            for i, root in enumerate(roots)
        ],
        saved_at=saved_at,
    )


def create_session(
    session_id: str,
    *roots,
    started_at: datetime | None = None,
    ended_at: datetime | None = None,
    saved_at: datetime | None = None,
    with_state: bool = True,
) -> Session:
    """Save a browser session and, unless with_state is False, its state."""
    ensure_store()
    if started_at is None:
        started_at = BASE_TIME
    session = Session(
        id=session_id,
        type=SessionType.BROWSER,
        started_at=started_at,
        ended_at=ended_at,
    )
    save_session(session)
    if with_state:
        save_state(make_state(session_id, *roots, saved_at=saved_at or started_at))
    return session


def minutes(n: int) -> timedelta:
    return timedelta(minutes=n)
