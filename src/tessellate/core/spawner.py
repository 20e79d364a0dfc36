"""Process spawning for tessellate.

Starts a new, fully detached browser host that resumes a given session.
"""

import logging
import os
import shutil
import subprocess
import sys

from tessellate.core.errors import SpawnFailedError
from tessellate.core.state import SESSION_ID_ENV

logger = logging.getLogger(__name__)

ENTRY_POINT = "tessellate"


def build_restore_command(session_id: str) -> list[str]:
    """Build the argv that resumes a session in a new host.

    Uses the installed `tessellate` entry point when it is on PATH, otherwise
    the current interpreter with `-m tessellate`.
    """
    executable = shutil.which(ENTRY_POINT)
    if executable:
        base = [executable]
    else:
        base = [sys.executable, "-m", "tessellate"]
    return base + ["browse", "--restore-session", session_id]


def spawn_with_session(session_id: str) -> int:
    """Start a detached host process that resumes session_id.

    The child gets no inherited standard streams and runs in its own session,
    so it survives this process exiting. Returns as soon as the OS reports
    the process started; it does not wait for the host to take the session.

    Args:
        session_id: The session to resume.

    Returns:
        PID of the spawned process.

    Raises:
        SpawnFailedError: If the OS cannot start the process.
    """
    command = build_restore_command(session_id)

    env = dict(os.environ)
    env.pop(SESSION_ID_ENV, None)

    try:
        process = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            start_new_session=True,
            close_fds=True,
            env=env,
        )
    except OSError as e:
        raise SpawnFailedError(str(e)) from e

    logger.info("spawned host pid=%d to restore session %s", process.pid, session_id)
    return process.pid
