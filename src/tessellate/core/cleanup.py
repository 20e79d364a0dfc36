"""Housekeeping for exited sessions.

Two passes, both best-effort:
- end_stale_sessions: sessions still marked running whose lock nobody holds
  (their host crashed) get ended_at set.
- cleanup_exited_sessions: exited sessions are pruned by age, then by count,
  oldest first. Deletion goes through the delete guard, so a session that
  became live in the meantime is skipped.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta

from tessellate.core import state as store
from tessellate.core.config import (
    get_max_exited_session_age_days,
    get_max_exited_sessions,
)
from tessellate.core.errors import SchemaMissingError, TessellateError
from tessellate.core.guard import delete_session
from tessellate.core.session import Session, SessionType, utc_now

logger = logging.getLogger(__name__)


@dataclass
class CleanupReport:
    """Outcome of a cleanup run."""

    deleted_by_age: list[str] = field(default_factory=list)
    deleted_by_count: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def total_deleted(self) -> int:
        return len(self.deleted_by_age) + len(self.deleted_by_count)


def _load_browser_sessions() -> list[Session]:
    try:
        sessions = store.load_all()
    except SchemaMissingError:
        return []
    return [s for s in sessions if s.type == SessionType.BROWSER]


def end_stale_sessions() -> list[str]:
    """Mark sessions whose host died without ending them as ended.

    Only sessions with a lock file are considered: a free lock proves the
    owner is gone. Sessions without a lock file are left alone.

    Returns:
        IDs of the sessions that were ended.
    """
    ended = []
    now = utc_now()
    for session in _load_browser_sessions():
        if session.is_ended:
            continue
        try:
            if not store.end_if_abandoned(session.id, now):
                continue
        except (FileNotFoundError, TessellateError) as e:
            logger.warning("failed to end stale session %s: %s", session.id, e)
            continue
        ended.append(session.id)

    if ended:
        logger.info("ended %d stale sessions", len(ended))
    return ended


def _exited_sessions(current_session_id: str) -> list[Session]:
    """Exited, non-live sessions, oldest first."""
    return [
        s
        for s in _load_browser_sessions()
        if s.is_ended and s.id != current_session_id and not store.is_live(s.id)
    ]


def _try_delete(session_id: str, current_session_id: str, report: CleanupReport) -> bool:
    try:
        delete_session(session_id, current_session_id)
    except TessellateError as e:
        logger.warning("cleanup: failed to delete session %s: %s", session_id, e)
        report.errors.append(f"{session_id}: {e}")
        return False
    return True


def cleanup_exited_sessions(
    max_exited: int | None = None,
    max_age_days: int | None = None,
    current_session_id: str = "",
) -> CleanupReport:
    """Delete old exited sessions.

    Args:
        max_exited: Exited sessions to keep. Negative means no limit. If
            None, uses the config value.
        max_age_days: Delete exited sessions that ended longer ago than this.
            0 disables. If None, uses the config value.
        current_session_id: Session owned by the caller, never deleted.

    Returns:
        CleanupReport listing what was deleted and what failed.
    """
    if max_exited is None:
        max_exited = get_max_exited_sessions()
    if max_age_days is None:
        max_age_days = get_max_exited_session_age_days()

    report = CleanupReport()

    if max_age_days > 0:
        cutoff = utc_now() - timedelta(days=max_age_days)
        for session in _exited_sessions(current_session_id):
            if session.ended_at is not None and session.ended_at < cutoff:
                if _try_delete(session.id, current_session_id, report):
                    report.deleted_by_age.append(session.id)

    if max_exited >= 0:
        remaining = sorted(
            _exited_sessions(current_session_id),
            key=lambda s: (s.ended_at, s.id),
        )
        excess = len(remaining) - max_exited
        for session in remaining[: max(excess, 0)]:
            if _try_delete(session.id, current_session_id, report):
                report.deleted_by_count.append(session.id)

    if report.total_deleted:
        logger.info(
            "session cleanup deleted %d (by age %d, by count %d)",
            report.total_deleted,
            len(report.deleted_by_age),
            len(report.deleted_by_count),
        )
    return report
