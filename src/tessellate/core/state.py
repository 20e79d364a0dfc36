"""Session store for tessellate.

All session data is stored in <data dir>/sessions/{id}/ with individual files:
- type: Session kind ("browser")
- started_at: ISO format timestamp
- ended_at: ISO format timestamp, absent while the session is running
- state.json: Resumable SessionState snapshot

Liveness is tracked with lock files in <data dir>/locks/. A running browser
host holds an exclusive flock on locks/session_{id}.lock for its lifetime,
so any other process can tell whether the session is live by trying to take
that lock without blocking. The answer is only ever a snapshot: a session
seen as not live may be picked up by a new process right afterwards.

Writes are serialized across processes with an exclusive flock on
sessions.lock. Reads take no lock; every file is replaced atomically.
"""

import fcntl
import logging
import os
import shutil
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import IO

import orjson

from tessellate.core.config import get_data_dir
from tessellate.core.errors import (
    CorruptStateError,
    MalformedNodeError,
    SchemaMissingError,
    SessionLockedError,
    StoreUnavailableError,
)
from tessellate.core.session import Session, SessionType
from tessellate.core.workspace import SessionState, state_from_dict, state_to_dict

logger = logging.getLogger(__name__)

# Set in the environment of a running browser host
SESSION_ID_ENV = "TESSELLATE_SESSION_ID"

STATE_FILE = "state.json"


def get_sessions_dir() -> Path:
    """Get the directory holding one subdirectory per session."""
    return get_data_dir() / "sessions"


def get_locks_dir() -> Path:
    """Get the directory holding per-session liveness lock files."""
    return get_data_dir() / "locks"


def ensure_store() -> Path:
    """Ensure the store directory structure exists.

    Returns:
        Path to the data directory.
    """
    data_dir = get_data_dir()
    try:
        (data_dir / "sessions").mkdir(parents=True, exist_ok=True)
        (data_dir / "locks").mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e
    return data_dir


def _get_session_dir(session_id: str) -> Path:
    return get_sessions_dir() / session_id


def _get_store_lock_path() -> Path:
    return get_data_dir() / "sessions.lock"


def get_lock_path(session_id: str) -> Path:
    """Get the liveness lock file path for a session."""
    return get_locks_dir() / f"session_{session_id}.lock"


@contextmanager
def _store_write_lock() -> Iterator[None]:
    """Hold the store-wide write lock."""
    ensure_store()
    with open(_get_store_lock_path(), "w") as lock_file:
        fcntl.flock(lock_file, fcntl.LOCK_EX)
        try:
            yield
        finally:
            fcntl.flock(lock_file, fcntl.LOCK_UN)


def _atomic_write(path: Path, data: bytes) -> None:
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_bytes(data)
    os.replace(tmp_path, path)


def save_session(session: Session) -> None:
    """Save session metadata to the store.

    Args:
        session: Session to save.

    Raises:
        StoreUnavailableError: If the files cannot be written.
    """
    try:
        with _store_write_lock():
            session_dir = _get_session_dir(session.id)
            session_dir.mkdir(parents=True, exist_ok=True)
            _atomic_write(session_dir / "type", session.type.value.encode())
            _atomic_write(
                session_dir / "started_at", session.started_at.isoformat().encode()
            )
            ended_path = session_dir / "ended_at"
            if session.ended_at is not None:
                _atomic_write(ended_path, session.ended_at.isoformat().encode())
            else:
                ended_path.unlink(missing_ok=True)
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e


def load_session(session_id: str) -> Session | None:
    """Load a session by ID.

    Args:
        session_id: The session ID to load.

    Returns:
        Session object if found, None if the session directory doesn't exist.

    Raises:
        ValueError: If the session files are malformed.
        StoreUnavailableError: If the session files cannot be read.
    """
    session_dir = _get_session_dir(session_id)

    if not session_dir.is_dir():
        return None

    try:
        type_path = session_dir / "type"
        session_type = (
            type_path.read_text().strip() if type_path.exists() else SessionType.BROWSER
        )
        started_at = datetime.fromisoformat((session_dir / "started_at").read_text().strip())
        ended_path = session_dir / "ended_at"
        ended_at = None
        if ended_path.exists():
            ended_at = datetime.fromisoformat(ended_path.read_text().strip())
    except FileNotFoundError:
        # Directory removed or still being created by another process
        return None
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e

    return Session(
        id=session_id,
        type=session_type,
        started_at=started_at,
        ended_at=ended_at,
    )


def load_all() -> list[Session]:
    """Load all sessions.

    Returns:
        List of all sessions, sorted by started_at (oldest first).

    Raises:
        SchemaMissingError: If the sessions directory has never been created.
        StoreUnavailableError: If the store cannot be read.
    """
    sessions_dir = get_sessions_dir()

    if not sessions_dir.exists():
        raise SchemaMissingError(f"no sessions directory at {sessions_dir}")

    sessions = []
    try:
        entries = list(sessions_dir.iterdir())
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e

    for session_dir in entries:
        if not session_dir.is_dir():
            continue
        try:
            session = load_session(session_dir.name)
        except ValueError as e:
            logger.warning("skipping unreadable session %s: %s", session_dir.name, e)
            continue
        if session:
            sessions.append(session)

    return sorted(sessions, key=lambda s: (s.started_at, s.id))


def mark_ended(session_id: str, ended_at: datetime) -> None:
    """Record that a session's owning process exited.

    Raises:
        FileNotFoundError: If session doesn't exist.
    """
    session_dir = _get_session_dir(session_id)
    if not session_dir.exists():
        raise FileNotFoundError(f"Session {session_id} not found")
    try:
        with _store_write_lock():
            _atomic_write(session_dir / "ended_at", ended_at.isoformat().encode())
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e


def clear_ended(session_id: str) -> None:
    """Mark a session as running again (used when it is resumed).

    Raises:
        FileNotFoundError: If session doesn't exist.
    """
    session_dir = _get_session_dir(session_id)
    if not session_dir.exists():
        raise FileNotFoundError(f"Session {session_id} not found")
    try:
        with _store_write_lock():
            (session_dir / "ended_at").unlink(missing_ok=True)
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e


def save_state(state: SessionState) -> None:
    """Persist a session's state snapshot, replacing the previous one.

    Raises:
        FileNotFoundError: If the session doesn't exist.
        StoreUnavailableError: If the snapshot cannot be written.
    """
    session_dir = _get_session_dir(state.session_id)
    if not session_dir.exists():
        raise FileNotFoundError(f"Session {state.session_id} not found")
    try:
        with _store_write_lock():
            _atomic_write(session_dir / STATE_FILE, orjson.dumps(state_to_dict(state)))
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e


def load_state(session_id: str, strict: bool = False) -> SessionState | None:
    """Load a session's state snapshot.

    Args:
        session_id: The session ID.
        strict: Reject malformed pane nodes instead of tolerating them.

    Returns:
        The state, or None if the session has no snapshot.

    Raises:
        CorruptStateError: If the snapshot cannot be parsed.
        StoreUnavailableError: If the snapshot cannot be read.
    """
    state_path = _get_session_dir(session_id) / STATE_FILE
    try:
        content = state_path.read_bytes()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e

    if not content:
        return None

    try:
        state = state_from_dict(orjson.loads(content), strict=strict)
    except MalformedNodeError as e:
        if strict:
            raise
        raise CorruptStateError(session_id, str(e)) from e
    except (orjson.JSONDecodeError, ValueError, TypeError, AttributeError) as e:
        raise CorruptStateError(session_id, str(e)) from e

    if not state.session_id:
        state.session_id = session_id
    return state


def delete_snapshot(session_id: str) -> None:
    """Delete a session's state snapshot. Missing snapshots are ignored."""
    state_path = _get_session_dir(session_id) / STATE_FILE
    try:
        with _store_write_lock():
            state_path.unlink(missing_ok=True)
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e


def delete_session(session_id: str) -> None:
    """Delete a session record from the store.

    Callers go through tessellate.core.guard.delete_session, which checks the
    session is not live first.

    Raises:
        FileNotFoundError: If session doesn't exist.
    """
    session_dir = _get_session_dir(session_id)

    if not session_dir.exists():
        raise FileNotFoundError(f"Session {session_id} not found")

    try:
        with _store_write_lock():
            shutil.rmtree(session_dir)
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e


def current_session_id() -> str:
    """ID of the session owned by this process, or "" if there is none."""
    return os.environ.get(SESSION_ID_ENV, "")


def get_active_session() -> Session | None:
    """Get the session owned by this process.

    Returns:
        The session named by TESSELLATE_SESSION_ID if it exists, else None.
    """
    session_id = current_session_id()
    if not session_id:
        return None
    return load_session(session_id)


# --- Liveness ---


def _is_current_lock_file(fd: int, lock_path: Path) -> bool:
    """Check that fd still refers to the file at lock_path.

    A lock taken on a file that was unlinked (and maybe recreated) after it
    was opened protects nothing.
    """
    try:
        path_stat = os.stat(lock_path)
    except FileNotFoundError:
        return False
    fd_stat = os.fstat(fd)
    return (fd_stat.st_dev, fd_stat.st_ino) == (path_stat.st_dev, path_stat.st_ino)


def is_live(session_id: str) -> bool:
    """Check whether some process currently holds the session's lock.

    Returns:
        True if the lock is held (including by this process through another
        handle), False if there is no lock file or the lock is free. When the
        lock file cannot be checked the session is reported live.
    """
    lock_path = get_lock_path(session_id)
    while True:
        try:
            fd = os.open(lock_path, os.O_RDWR)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("cannot open lock for session %s: %s", session_id, e)
            return True

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return True
        except OSError as e:
            logger.warning("cannot check lock for session %s: %s", session_id, e)
            return True
        else:
            if _is_current_lock_file(fd, lock_path):
                return False
            # Replaced while we opened it; check the new file.
        finally:
            os.close(fd)


def acquire_lock(session_id: str) -> IO[str]:
    """Take ownership of a session for the lifetime of this process.

    Writes the owning PID into the lock file. The returned file must stay
    open; closing it releases the lock.

    Raises:
        SessionLockedError: If another process holds the lock.
        StoreUnavailableError: If the lock file cannot be created.
    """
    ensure_store()
    lock_path = get_lock_path(session_id)
    while True:
        try:
            lock_file = open(lock_path, "a+")
        except OSError as e:
            raise StoreUnavailableError(str(e)) from e

        try:
            fcntl.flock(lock_file, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            lock_file.close()
            raise SessionLockedError(session_id) from None

        if _is_current_lock_file(lock_file.fileno(), lock_path):
            break
        # The previous owner removed the file after we opened it.
        lock_file.close()

    lock_file.seek(0)
    lock_file.truncate()
    lock_file.write(str(os.getpid()))
    lock_file.flush()
    return lock_file


def release_lock(session_id: str, lock_file: IO[str]) -> None:
    """Release a lock taken with acquire_lock and remove the lock file.

    The file is removed while the lock is still held. A process that opened
    it just before the removal sees it is gone once it gets the lock.
    """
    try:
        get_lock_path(session_id).unlink(missing_ok=True)
    finally:
        fcntl.flock(lock_file, fcntl.LOCK_UN)
        lock_file.close()


def end_if_abandoned(session_id: str, ended_at: datetime) -> bool:
    """Record the exit of a session whose lock file exists but is not held.

    The lock is taken first and held while ended_at is written and the lock
    file removed, so no host can resume the session halfway through.

    Returns:
        True if the session was ended, False if it has no lock file or some
        process holds the lock.

    Raises:
        FileNotFoundError: If session doesn't exist.
        StoreUnavailableError: If the lock or the session cannot be written.
    """
    lock_path = get_lock_path(session_id)
    try:
        fd = os.open(lock_path, os.O_RDWR)
    except FileNotFoundError:
        return False
    except OSError as e:
        raise StoreUnavailableError(str(e)) from e

    try:
        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError:
            return False
        if not _is_current_lock_file(fd, lock_path):
            return False
        mark_ended(session_id, ended_at)
        lock_path.unlink(missing_ok=True)
        return True
    finally:
        os.close(fd)


def remove_lock_file(session_id: str) -> None:
    """Remove a stale lock file. Missing files are ignored."""
    get_lock_path(session_id).unlink(missing_ok=True)
