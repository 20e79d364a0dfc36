"""Guarded session deletion for tessellate."""

import logging

from tessellate.core import state as store
from tessellate.core.catalog import get_session_info
from tessellate.core.errors import GuardViolationError, SessionNotFoundError

logger = logging.getLogger(__name__)


def delete_session(session_id: str, current_session_id: str = "") -> None:
    """Permanently delete an exited session and its snapshot.

    This is the only path that destroys a session. The current/active
    classification is recomputed here rather than taken from an earlier
    listing. Liveness is best-effort: a host that takes the session between
    the check and the deletion is not detected.

    Args:
        session_id: Full ID of the session to delete.
        current_session_id: ID of the session owned by the caller, if any.

    Raises:
        GuardViolationError: If the session is current or active. Nothing
            is deleted.
        SessionNotFoundError: If the session doesn't exist.
        StoreUnavailableError: If the store cannot be read or written.
    """
    if current_session_id and session_id == current_session_id:
        raise GuardViolationError(session_id, "it is the current session")

    info = get_session_info(session_id, current_session_id)
    if info is None:
        raise SessionNotFoundError(session_id)
    if info.is_current:
        raise GuardViolationError(session_id, "it is the current session")
    if info.is_active:
        raise GuardViolationError(session_id, "it is running in another process")

    store.delete_snapshot(session_id)
    try:
        store.delete_session(session_id)
    except FileNotFoundError:
        pass  # Removed concurrently
    store.remove_lock_file(session_id)
    logger.info("deleted session %s", session_id)
