"""Session restore for tessellate.

Validates that a session can be resumed and spawns a new host that takes
ownership of the same session ID. The stored record is left untouched; once
the new host takes the liveness lock the catalog reports the session active.

Two restores of the same ID issued before the first host takes the lock both
spawn. The second host fails to acquire the lock and exits
(SessionLockedError), so only one process ever owns the session.
"""

import logging

from tessellate.core import spawner
from tessellate.core import state as store
from tessellate.core.errors import (
    CorruptStateError,
    MalformedNodeError,
    RestoreFailedError,
    SchemaMissingError,
    StoreUnavailableError,
)
from tessellate.core.session import SessionType
from tessellate.core.workspace import SESSION_STATE_VERSION, SessionState

logger = logging.getLogger(__name__)

# Number of recent sessions considered when looking for one to auto-restore
MAX_SESSIONS_TO_CHECK = 10


def load_restorable_state(session_id: str) -> SessionState:
    """Load and validate the state a restore would resume from.

    An empty tab list is valid: it restores an empty workspace.

    Raises:
        RestoreFailedError: If the ID is empty, the session or its state is
            missing, the state is unreadable, malformed or from a newer
            schema version, or the store cannot be read.
    """
    if not session_id:
        raise RestoreFailedError("session id required")

    try:
        session = store.load_session(session_id)
        if session is None:
            raise RestoreFailedError(f"session {session_id} not found")
        state = store.load_state(session_id, strict=True)
    except (StoreUnavailableError, ValueError) as e:
        raise RestoreFailedError(f"get session snapshot: {e}") from e
    except CorruptStateError as e:
        raise RestoreFailedError(f"snapshot unreadable: {e.reason}") from e
    except MalformedNodeError as e:
        raise RestoreFailedError(f"snapshot invalid: {e}") from e

    if state is None:
        raise RestoreFailedError(f"session {session_id} has no saved state")
    if state.version > SESSION_STATE_VERSION:
        raise RestoreFailedError(
            f"snapshot version {state.version} is newer than supported "
            f"version {SESSION_STATE_VERSION}"
        )
    return state


def restore_session(session_id: str) -> int:
    """Resume a session in a new detached host process.

    Args:
        session_id: Full ID of the session to restore.

    Returns:
        PID of the spawned host.

    Raises:
        RestoreFailedError: If validation fails. Nothing is spawned.
        SpawnFailedError: If the OS cannot start the host.
    """
    state = load_restorable_state(session_id)
    logger.info(
        "restoring session %s (%d tabs, %d panes)",
        session_id,
        len(state.tabs),
        state.count_panes(),
    )
    return spawner.spawn_with_session(session_id)


def find_last_restorable(exclude_session_id: str = "") -> tuple[str, SessionState] | None:
    """Find the most recent session worth restoring automatically.

    A session qualifies if it is a browser session, is not excluded, is not
    live, and has a readable state with at least one tab. Only the
    MAX_SESSIONS_TO_CHECK most recently started sessions are considered.

    Returns:
        (session_id, state) or None when nothing qualifies.
    """
    try:
        sessions = store.load_all()
    except SchemaMissingError:
        return None

    recent = sorted(sessions, key=lambda s: (s.started_at, s.id), reverse=True)
    for session in recent[:MAX_SESSIONS_TO_CHECK]:
        if session.type != SessionType.BROWSER or session.id == exclude_session_id:
            continue
        if store.is_live(session.id):
            logger.debug("auto-restore: skipping live session %s", session.id)
            continue
        try:
            state = store.load_state(session.id)
        except (CorruptStateError, StoreUnavailableError) as e:
            logger.debug("auto-restore: cannot read %s: %s", session.id, e)
            continue
        if state is None or not state.tabs:
            continue
        logger.info(
            "auto-restore: found session %s (%d tabs)", session.id, len(state.tabs)
        )
        return session.id, state

    return None
