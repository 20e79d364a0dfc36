"""Session identifier resolution for tessellate.

Users refer to sessions by full ID ("20251217_205106_a7b3"), by short ID
("a7b3") or by any unique trailing part of the ID ("5106_a7b3").
"""

from tessellate.core.catalog import SessionInfo, list_sessions
from tessellate.core.errors import AmbiguousSessionError, SessionNotFoundError

RESOLVE_LIST_LIMIT = 1000


def resolve(query: str, infos: list[SessionInfo]) -> SessionInfo:
    """Resolve a session reference against a list of sessions.

    Matching order, first match wins:
    1. exact full ID
    2. exact short ID (trailing 4 characters)
    3. unique suffix of a full ID (skipped for an empty query)

    Args:
        query: Full ID, short ID or ID suffix.
        infos: Sessions to search, usually from list_sessions().

    Returns:
        The single matching session.

    Raises:
        SessionNotFoundError: If nothing matches.
        AmbiguousSessionError: If two or more sessions match at one step.
    """
    for info in infos:
        if info.session.id == query:
            return info

    steps = [lambda info: info.short_id == query]
    if query:
        steps.append(lambda info: info.session.id.endswith(query))

    for matches_step in steps:
        matches = [info for info in infos if matches_step(info)]
        if len(matches) == 1:
            return matches[0]
        if len(matches) > 1:
            raise AmbiguousSessionError(
                query,
                [info.short_id for info in matches],
                [info.session.id for info in matches],
            )

    raise SessionNotFoundError(query)


def resolve_session(query: str, current_session_id: str = "") -> SessionInfo:
    """List sessions and resolve a reference among them.

    Raises:
        SessionNotFoundError: If nothing matches.
        AmbiguousSessionError: If the reference matches several sessions.
        StoreUnavailableError: If the store cannot be read.
    """
    infos = list_sessions(current_session_id, limit=RESOLVE_LIST_LIMIT)
    return resolve(query, infos)
