"""Session dataclass for tessellate."""

import re
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum

SHORT_ID_LENGTH = 4

SESSION_ID_PATTERN = re.compile(r"^\d{8}_\d{6}_[0-9a-z]{4}$")

_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


class SessionType(str, Enum):
    """Kind of session. Only browser sessions exist today."""

    BROWSER = "browser"


def generate_session_id(now: datetime | None = None) -> str:
    """Build a new session ID.

    Format is YYYYMMDD_HHMMSS_xxxx, so IDs sort by creation time.

    Args:
        now: Creation time. Defaults to the current local time.

    Returns:
        The new session ID (e.g., "20251217_205106_a7b3").
    """
    if now is None:
        now = datetime.now()
    suffix = "".join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(SHORT_ID_LENGTH))
    return f"{now.strftime('%Y%m%d_%H%M%S')}_{suffix}"


def is_valid_session_id(session_id: str) -> bool:
    """Check that a string has the session ID format."""
    return bool(SESSION_ID_PATTERN.match(session_id))


def short_id(session_id: str) -> str:
    """Return the trailing short ID users type instead of the full ID."""
    return session_id[-SHORT_ID_LENGTH:]


@dataclass
class Session:
    """Represents a browser session.

    Attributes:
        id: Sortable ID in YYYYMMDD_HHMMSS_xxxx format
        type: Session kind - one of SessionType
        started_at: Timestamp when the session was created
        ended_at: Timestamp of normal exit, None while running or after a crash
    """

    id: str
    type: SessionType
    started_at: datetime
    ended_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate session type."""
        try:
            self.type = SessionType(self.type)
        except ValueError:
            valid = {t.value for t in SessionType}
            raise ValueError(
                f"Invalid session type: {self.type}. Must be one of {valid}"
            ) from None

    @property
    def short_id(self) -> str:
        return short_id(self.id)

    @property
    def is_ended(self) -> bool:
        return self.ended_at is not None


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)
