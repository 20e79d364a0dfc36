"""Error types for tessellate session management.

Every error raised by the core derives from TessellateError so the CLI and
TUI can render them uniformly. None of them are retried inside the core.
"""


class TessellateError(Exception):
    """Base class for tessellate errors."""

    pass


class StoreUnavailableError(TessellateError):
    """Raised when the session store cannot be read or written."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"session store unavailable: {reason}")
        self.reason = reason


class SchemaMissingError(TessellateError):
    """Raised when the session store has never been initialized.

    A fresh installation has no sessions directory yet. The catalog turns
    this into an empty list.
    """

    pass


class CorruptStateError(TessellateError):
    """Raised when one session's stored state cannot be parsed."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"state for session {session_id} is unreadable: {reason}")
        self.session_id = session_id
        self.reason = reason


class SessionNotFoundError(TessellateError):
    """Raised when no session matches an identifier query."""

    def __init__(self, query: str) -> None:
        super().__init__(f"no session found matching '{query}'")
        self.query = query


class AmbiguousSessionError(TessellateError):
    """Raised when two or more sessions match an identifier query."""

    def __init__(
        self, query: str, candidates: list[str], session_ids: list[str] | None = None
    ) -> None:
        self.query = query
        self.candidates = sorted(candidates)
        self.session_ids = sorted(session_ids or [])
        super().__init__(
            f"ambiguous session ID '{query}' matches {len(self.candidates)} "
            f"sessions: {', '.join(self.candidates)}"
        )


class RestoreFailedError(TessellateError):
    """Raised when a session cannot be validated for restore."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"restore failed: {reason}")
        self.reason = reason


class SpawnFailedError(TessellateError):
    """Raised when the OS fails to start a resuming process."""

    def __init__(self, reason: str) -> None:
        super().__init__(f"spawn failed: {reason}")
        self.reason = reason


class GuardViolationError(TessellateError):
    """Raised on an attempt to delete a current or active session."""

    def __init__(self, session_id: str, reason: str) -> None:
        super().__init__(f"cannot delete session {session_id}: {reason}")
        self.session_id = session_id
        self.reason = reason


class MalformedNodeError(TessellateError):
    """Raised by strict validation when a pane tree node is malformed."""

    def __init__(self, path: str, reason: str) -> None:
        super().__init__(f"malformed pane node at {path}: {reason}")
        self.path = path
        self.reason = reason


class SessionLockedError(TessellateError):
    """Raised when another process already owns a session."""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"session {session_id} is owned by another process")
        self.session_id = session_id
