"""Browser session lifecycle for tessellate.

A browser host owns exactly one session while it runs:

    with start_browser_session(resume_id) as browser:
        browser.snapshot(state)   # repeatedly, while live
    # on exit: ended_at recorded, liveness lock released

Starting without a resume ID creates a new session with an empty state.
Starting with one takes over the existing session and keeps its stored state
as the initial state.
"""

import logging
import os
from dataclasses import replace
from typing import IO

from tessellate.core import state as store
from tessellate.core.errors import SessionNotFoundError, TessellateError
from tessellate.core.session import Session, SessionType, generate_session_id, utc_now
from tessellate.core.workspace import SessionState, empty_state, validate_state

logger = logging.getLogger(__name__)


class BrowserSession:
    """A session owned by this process."""

    def __init__(self, session: Session, state: SessionState, lock_file: IO[str]) -> None:
        self.session = session
        self.state = state
        self._lock_file: IO[str] | None = lock_file

    @property
    def id(self) -> str:
        return self.session.id

    @property
    def is_open(self) -> bool:
        return self._lock_file is not None

    def snapshot(self, state: SessionState) -> SessionState:
        """Persist a new state for this session, stamped with the save time.

        Raises:
            MalformedNodeError: If a pane tree is malformed. Nothing is saved.
        """
        validate_state(state)
        state = replace(state, session_id=self.session.id, saved_at=utc_now())
        store.save_state(state)
        self.state = state
        return state

    def end(self) -> None:
        """Record a normal exit and release the session. Safe to call twice.

        A failed final snapshot is logged and leaves the last saved state in
        place; ended_at is still recorded.
        """
        if self._lock_file is None:
            return
        try:
            try:
                self.snapshot(self.state)
            except TessellateError as e:
                logger.warning("final snapshot of session %s failed: %s", self.session.id, e)
            ended_at = utc_now()
            store.mark_ended(self.session.id, ended_at)
            self.session = replace(self.session, ended_at=ended_at)
        finally:
            store.release_lock(self.session.id, self._lock_file)
            self._lock_file = None
            if os.environ.get(store.SESSION_ID_ENV) == self.session.id:
                del os.environ[store.SESSION_ID_ENV]
        logger.info("session %s ended", self.session.id)

    def __enter__(self) -> "BrowserSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.end()


def start_browser_session(resume_id: str = "") -> BrowserSession:
    """Create or resume a session and take ownership of it.

    Args:
        resume_id: Session to resume, or "" to create a new one.

    Returns:
        The owned session. Its ID is exported as TESSELLATE_SESSION_ID so
        code running in this process sees it as the current session.

    Raises:
        SessionNotFoundError: If resume_id doesn't exist.
        SessionLockedError: If another process already owns the session.
        StoreUnavailableError: If the store cannot be read or written.
    """
    store.ensure_store()

    if resume_id:
        session = store.load_session(resume_id)
        if session is None:
            raise SessionNotFoundError(resume_id)
        lock_file = store.acquire_lock(session.id)
        try:
            store.clear_ended(session.id)
            session = replace(session, ended_at=None)
            state = store.load_state(session.id) or empty_state(session.id)
        except Exception:
            store.release_lock(session.id, lock_file)
            raise
        logger.info("resumed session %s with %d tabs", session.id, len(state.tabs))
    else:
        session = Session(
            id=generate_session_id(),
            type=SessionType.BROWSER,
            started_at=utc_now(),
        )
        lock_file = store.acquire_lock(session.id)
        try:
            store.save_session(session)
            state = empty_state(session.id)
            store.save_state(state)
        except Exception:
            store.release_lock(session.id, lock_file)
            raise
        logger.info("started session %s", session.id)

    os.environ[store.SESSION_ID_ENV] = session.id
    return BrowserSession(session, state, lock_file)
